"""Exception taxonomy shared by the analysis pipeline."""

from __future__ import annotations


class RepolensError(RuntimeError):
    """Base class for all pipeline errors."""


class CloneError(RepolensError):
    """Raised when a repository cannot be cloned. Fatal for the job."""


class ScanIOError(RepolensError):
    """Raised for an unreadable subtree while scanning. Logged and skipped."""


class ReadError(RepolensError):
    """Raised when a single file cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path


class ExtractionParseError(RepolensError):
    """Raised when a file cannot be parsed for one kind of signal."""

    def __init__(self, path: str, kind: str, reason: str) -> None:
        super().__init__(f"Failed to parse {path} for {kind}: {reason}")
        self.path = path
        self.kind = kind


class PersistenceError(RepolensError):
    """Raised when the analysis store rejects a write."""


class AnalysisCancelledError(RepolensError):
    """Raised inside a running job once cancellation has been requested."""


class InvalidTransitionError(RepolensError):
    """Raised on an attempt to move a job backwards or out of a terminal state."""


__all__ = [
    "AnalysisCancelledError",
    "CloneError",
    "ExtractionParseError",
    "InvalidTransitionError",
    "PersistenceError",
    "ReadError",
    "RepolensError",
    "ScanIOError",
]
