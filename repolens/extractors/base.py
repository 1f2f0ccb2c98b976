"""Base classes for per-file signal extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, List, TypeVar

from ..models import FileEntry

T = TypeVar("T")

JS_EXTENSIONS = frozenset({".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts", ".vue", ".svelte"})

LANGUAGE_BY_EXTENSION = {
    **{extension: "javascript" for extension in JS_EXTENSIONS},
    ".py": "python",
    ".java": "java",
    ".kt": "java",
    ".go": "go",
    ".rb": "ruby",
    ".php": "php",
}


class SignalExtractor(ABC, Generic[T]):
    """Contract for extractors that turn one file's content into signals."""

    kind: str = "signal"

    @abstractmethod
    def supports(self, entry: FileEntry) -> bool:
        """Return True when the file should be read for this kind of signal."""

    @abstractmethod
    def extract(self, entry: FileEntry, content: str) -> List[T]:
        """Return the signals found in ``content``."""


def line_of(text: str, index: int) -> int:
    """Return 1-based line number for a character index."""
    return text.count("\n", 0, index) + 1


def language_of(entry: FileEntry) -> str | None:
    return LANGUAGE_BY_EXTENSION.get(entry.extension)


__all__ = ["JS_EXTENSIONS", "SignalExtractor", "language_of", "line_of"]
