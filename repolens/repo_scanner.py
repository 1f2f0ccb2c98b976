"""Workspace management, cloning and file tree enumeration."""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Pattern, Sequence

from .errors import ReadError, ScanIOError
from .git.client import GitClient
from .logging import get_logger
from .models import FileEntry

_LOGGER = get_logger("scanner")

DEFAULT_IGNORES: tuple[str, ...] = (
    ".git",
    "node_modules",
    ".env*",
    "*.log",
    "dist",
    "build",
    "coverage",
    ".vscode",
    ".idea",
    ".DS_Store",
    "Thumbs.db",
    "*.pyc",
    "__pycache__",
    "venv",
    ".venv",
    "*.egg-info",
    ".pytest_cache",
    ".mypy_cache",
)

# Environment templates carry variable names but no values; keep them visible
# to the environment variable pass even though `.env*` is ignored.
_TEMPLATE_SUFFIXES = (".example", ".sample", ".template", ".dist")

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

_GLOB_CHARS = re.compile(r"[*?]")
_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass
class IgnoreRule:
    """Represents one ignore entry from the defaults, config or .gitignore."""

    pattern: str
    regex: Optional[Pattern[str]] = None

    def matches(self, name: str, rel_path: str) -> bool:
        if self.regex is not None:
            return bool(self.regex.fullmatch(name) or self.regex.fullmatch(rel_path))
        if name == self.pattern or rel_path == self.pattern:
            return True
        # Plain entries match whole path segments, so `build` does not swallow `build.gradle`.
        return f"/{self.pattern}/" in f"/{rel_path}/"


def build_ignore_rule(raw: str) -> IgnoreRule | None:
    pattern = raw.strip()
    if not pattern or pattern.startswith("#") or pattern.startswith("!"):
        return None
    if pattern.startswith("**/"):
        pattern = pattern[3:]
    pattern = pattern.strip("/")
    if not pattern:
        return None
    if _GLOB_CHARS.search(pattern):
        return IgnoreRule(pattern=pattern, regex=_glob_to_regex(pattern))
    return IgnoreRule(pattern=pattern)


def parse_gitignore(content: str) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for line in content.splitlines():
        rule = build_ignore_rule(line)
        if rule is not None:
            rules.append(rule)
    return rules


def _glob_to_regex(pattern: str) -> Pattern[str]:
    parts: List[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts))


class RepositoryFetcher:
    """Clones repositories into per-job workspaces and enumerates their files."""

    def __init__(
        self,
        workspace_root: Path | str,
        *,
        git: GitClient | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        extra_ignores: Sequence[str] = (),
        default_ignores: Sequence[str] | None = None,
    ) -> None:
        self.workspace_root = Path(workspace_root)
        self._git = git or GitClient()
        self.max_file_size = max_file_size
        defaults = DEFAULT_IGNORES if default_ignores is None else tuple(default_ignores)
        self._default_rules = [rule for rule in map(build_ignore_rule, defaults) if rule]
        self._extra_rules = [rule for rule in map(build_ignore_rule, extra_ignores) if rule]

    # ------------------------------------------------------------------
    # Workspace

    def workspace_for(self, project_id: str, job_id: str) -> Path:
        """Return the job-exclusive workspace directory."""
        return self.workspace_root / _safe_segment(project_id) / _safe_segment(job_id)

    def clone(
        self,
        url: str,
        project_id: str,
        job_id: str,
        *,
        branch: str | None = None,
        depth: int | None = None,
    ) -> Path:
        target = self.workspace_for(project_id, job_id)
        if target.exists():
            shutil.rmtree(target)
        return self._git.clone(url, target, branch=branch, depth=depth)

    def cleanup(self, project_id: str, job_id: str | None = None) -> None:
        """Remove a job workspace (or every workspace of a project). Never raises."""
        try:
            target = (
                self.workspace_for(project_id, job_id)
                if job_id
                else self.workspace_root / _safe_segment(project_id)
            )
        except ValueError as exc:
            _LOGGER.warning("Skipping cleanup: %s", exc)
            return
        try:
            shutil.rmtree(target)
        except FileNotFoundError:
            return
        except OSError as exc:
            _LOGGER.warning("Failed to clean up workspace %s: %s", target, exc)
            return
        _LOGGER.debug("Removed workspace %s", target)

    # ------------------------------------------------------------------
    # Scanning

    def scan(self, root_path: Path | str) -> List[FileEntry]:
        """Enumerate the tree under ``root_path``, honoring ignore rules."""
        root = Path(root_path)
        if not root.is_dir():
            raise ScanIOError(f"Scan root {root} is not a directory")

        gitignore_rules = parse_gitignore(self._git.get_gitignore_content(root))
        entries: List[FileEntry] = []

        def _on_error(exc: OSError) -> None:
            _LOGGER.warning("%s", ScanIOError(f"Skipping unreadable directory {exc.filename}: {exc.strerror}"))

        for dirpath, dirnames, filenames in os.walk(root, topdown=True, onerror=_on_error):
            current = Path(dirpath)
            rel_dir = current.relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir

            kept_dirs: List[str] = []
            for dirname in sorted(dirnames):
                rel_path = f"{rel_dir}/{dirname}" if rel_dir else dirname
                full_path = current / dirname
                if full_path.is_symlink() or self._is_ignored(dirname, rel_path, gitignore_rules):
                    continue
                kept_dirs.append(dirname)
                entries.append(
                    FileEntry(
                        path=str(full_path),
                        relative_path=rel_path,
                        name=dirname,
                        extension="",
                        size=0,
                        is_directory=True,
                    )
                )
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if self._is_ignored(filename, rel_path, gitignore_rules):
                    continue
                full_path = current / filename
                try:
                    stat = full_path.lstat()
                except OSError as exc:
                    _LOGGER.warning("Skipping %s: %s", rel_path, exc)
                    continue
                if full_path.is_symlink():
                    _LOGGER.debug("Skipping symlink %s", rel_path)
                    continue
                if stat.st_size > self.max_file_size:
                    _LOGGER.warning(
                        "Skipping %s: %d bytes exceeds the %d byte limit",
                        rel_path,
                        stat.st_size,
                        self.max_file_size,
                    )
                    continue
                entries.append(
                    FileEntry(
                        path=str(full_path),
                        relative_path=rel_path,
                        name=filename,
                        extension=Path(filename).suffix.lower(),
                        size=stat.st_size,
                    )
                )

        entries.sort(key=lambda entry: entry.relative_path)
        _LOGGER.info("Scanned %d entries under %s", len(entries), root)
        return entries

    def read_file_content(self, path: FileEntry | Path | str) -> str:
        target = Path(path.path) if isinstance(path, FileEntry) else Path(path)
        try:
            return target.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise ReadError(str(target), exc.strerror or str(exc)) from exc

    def _is_ignored(self, name: str, rel_path: str, gitignore_rules: Sequence[IgnoreRule]) -> bool:
        if any(rule.matches(name, rel_path) for rule in self._default_rules):
            if not name.lower().endswith(_TEMPLATE_SUFFIXES):
                return True
        if any(rule.matches(name, rel_path) for rule in self._extra_rules):
            return True
        return any(rule.matches(name, rel_path) for rule in gitignore_rules)


def _safe_segment(value: str) -> str:
    if not value or value in {".", ".."} or not _SAFE_SEGMENT.match(value):
        raise ValueError(f"Invalid workspace identifier: {value!r}")
    return value


__all__ = [
    "DEFAULT_IGNORES",
    "IgnoreRule",
    "RepositoryFetcher",
    "build_ignore_rule",
    "parse_gitignore",
]
