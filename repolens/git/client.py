"""Thin wrapper around the git command line used to fetch repositories."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable, Iterable

from ..errors import CloneError
from ..logging import get_logger

_LOGGER = get_logger("git")


class GitClient:
    """Clones repositories through an injectable command runner."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def clone(
        self,
        url: str,
        path: Path | str,
        *,
        branch: str | None = None,
        depth: int | None = None,
    ) -> Path:
        """Clone ``url`` into ``path`` and return the local checkout path."""
        url = (url or "").strip()
        if not url:
            raise CloneError("Repository URL is empty")
        if url.startswith("-"):
            raise CloneError(f"Refusing to clone suspicious URL: {url}")

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        args = ["git", "clone"]
        if depth:
            args.extend(["--depth", str(depth)])
        if branch:
            args.extend(["--branch", branch, "--single-branch"])
        args.extend(["--", url, str(target)])

        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"

        _LOGGER.info("Cloning %s into %s", url, target)
        try:
            self._run(args, cwd=target.parent, env=env, capture_output=True)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip().splitlines()
            reason = detail[-1] if detail else f"git exited with status {exc.returncode}"
            raise CloneError(f"Failed to clone {url}: {reason}") from exc
        except OSError as exc:
            raise CloneError(f"Failed to clone {url}: {exc}") from exc
        return target

    @staticmethod
    def get_gitignore_content(path: Path | str) -> str:
        """Return the root .gitignore of a checkout, or an empty string."""
        gitignore = Path(path) / ".gitignore"
        try:
            return gitignore.read_text(encoding="utf-8", errors="ignore")
        except FileNotFoundError:
            return ""
        except OSError as exc:
            _LOGGER.warning("Could not read %s: %s", gitignore, exc)
            return ""

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, env=env, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=capture_output,
        )
        if capture_output:
            return completed.stdout
        return ""


__all__ = ["GitClient"]
