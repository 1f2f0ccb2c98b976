"""Facade running every signal extractor over a scanned file tree."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Sequence, TypeVar

from ..analyzers.classifier import AnalyzeOptions, should_analyze
from ..errors import ExtractionParseError, ReadError
from ..logging import get_logger
from ..models import (
    APICallSignal,
    DatabaseConnectionSignal,
    EnvironmentVariableUsage,
    FileEntry,
    LibraryDependency,
)
from .api_calls import APICallExtractor, dedupe_api_calls
from .base import SignalExtractor
from .databases import DatabaseExtractor
from .environment import EnvironmentExtractor, is_declaration_file, merge_usages
from .manifests import ManifestExtractor

_LOGGER = get_logger("extractors")

T = TypeVar("T")


@dataclass
class ExtractedSignals:
    api_calls: List[APICallSignal] = field(default_factory=list)
    database_connections: List[DatabaseConnectionSignal] = field(default_factory=list)
    dependencies: List[LibraryDependency] = field(default_factory=list)
    environment_variables: List[EnvironmentVariableUsage] = field(default_factory=list)


class DependencySignalExtractor:
    """Reads candidate files once per signal kind and collects their signals."""

    def __init__(
        self,
        reader: Callable[[FileEntry], str],
        *,
        options: AnalyzeOptions | None = None,
        api_calls: APICallExtractor | None = None,
        databases: DatabaseExtractor | None = None,
        manifests: ManifestExtractor | None = None,
        environment: EnvironmentExtractor | None = None,
    ) -> None:
        self._reader = reader
        self._options = options or AnalyzeOptions()
        self._api_calls = api_calls or APICallExtractor()
        self._databases = databases or DatabaseExtractor()
        self._manifests = manifests or ManifestExtractor()
        self._environment = environment or EnvironmentExtractor()

    def extract_api_calls(self, files: Sequence[FileEntry]) -> List[APICallSignal]:
        return dedupe_api_calls(self._run(self._api_calls, files))

    def extract_database_connections(self, files: Sequence[FileEntry]) -> List[DatabaseConnectionSignal]:
        return self._run(self._databases, files)

    def extract_dependencies(self, files: Sequence[FileEntry]) -> List[LibraryDependency]:
        return self._run(self._manifests, files)

    def extract_environment_variables(self, files: Sequence[FileEntry]) -> List[EnvironmentVariableUsage]:
        # Declarations first so merged entries keep the declared order.
        ordered = sorted(files, key=lambda entry: not is_declaration_file(entry.name))
        return merge_usages(self._run(self._environment, ordered))

    def extract_all(self, files: Sequence[FileEntry]) -> ExtractedSignals:
        """Run the four independent extractions concurrently."""
        with ThreadPoolExecutor(max_workers=4, thread_name_prefix="repolens-extract") as pool:
            api_calls = pool.submit(self.extract_api_calls, files)
            databases = pool.submit(self.extract_database_connections, files)
            dependencies = pool.submit(self.extract_dependencies, files)
            environment = pool.submit(self.extract_environment_variables, files)
            return ExtractedSignals(
                api_calls=api_calls.result(),
                database_connections=databases.result(),
                dependencies=dependencies.result(),
                environment_variables=environment.result(),
            )

    def _run(self, extractor: SignalExtractor[T], files: Sequence[FileEntry]) -> List[T]:
        results: List[T] = []
        for entry in files:
            if entry.is_directory or not extractor.supports(entry):
                continue
            if not should_analyze(entry.relative_path, self._options):
                continue
            try:
                content = self._reader(entry)
            except ReadError as exc:
                _LOGGER.debug("Skipping %s for %s: %s", entry.relative_path, extractor.kind, exc)
                continue
            try:
                results.extend(extractor.extract(entry, content))
            except ExtractionParseError as exc:
                _LOGGER.warning("%s", exc)
            except Exception as exc:  # pragma: no cover - one bad file must not sink the run
                _LOGGER.warning(
                    "%s", ExtractionParseError(entry.relative_path, extractor.kind, str(exc))
                )
        _LOGGER.debug("Extracted %d %s signals", len(results), extractor.kind)
        return results


__all__ = ["DependencySignalExtractor", "ExtractedSignals"]
