"""Per-file extractors for API calls, databases, manifests and environment variables."""

from .api_calls import APICallExtractor
from .databases import DatabaseExtractor, sanitize_connection_string
from .environment import EnvironmentExtractor
from .manifests import ManifestExtractor
from .signals import DependencySignalExtractor, ExtractedSignals

__all__ = [
    "APICallExtractor",
    "DatabaseExtractor",
    "DependencySignalExtractor",
    "EnvironmentExtractor",
    "ExtractedSignals",
    "ManifestExtractor",
    "sanitize_connection_string",
]
