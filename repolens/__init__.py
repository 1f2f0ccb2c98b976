"""repolens: static map of a repository's stack and dependencies."""

__all__ = ["__version__"]

__version__ = "0.1.0"
