"""Source control helpers."""

from .client import GitClient

__all__ = ["GitClient"]
