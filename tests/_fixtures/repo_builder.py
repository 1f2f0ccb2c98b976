"""Helper utilities for constructing temporary repositories in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from pathlib import PurePosixPath
from typing import Dict, List, Mapping

from repolens.models import FileEntry
from repolens.repo_scanner import RepositoryFetcher


class RepoBuilder:
    """Utility for writing files into a throwaway repository and rescanning it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()
        self.fetcher = RepositoryFetcher(tmp_path / "workspaces")

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the repository."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def scan(self) -> List[FileEntry]:
        """Return a fresh listing of the repository contents."""
        return self.fetcher.scan(self.root)

    def entries(self) -> Dict[str, FileEntry]:
        """Return the scanned entries keyed by relative path."""
        return {entry.relative_path: entry for entry in self.scan()}

    def read(self, entry: FileEntry) -> str:
        return self.fetcher.read_file_content(entry)

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root


def file_entry(relative_path: str, size: int = 0) -> FileEntry:
    """Build a FileEntry for extractor tests that never touch the disk."""
    name = PurePosixPath(relative_path).name
    return FileEntry(
        path=f"/repo/{relative_path}",
        relative_path=relative_path,
        name=name,
        extension=PurePosixPath(name).suffix.lower(),
        size=size,
    )


__all__ = ["RepoBuilder", "file_entry"]
