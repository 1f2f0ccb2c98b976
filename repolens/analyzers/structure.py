"""Repository layout statistics, important files and project type."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from ..errors import ReadError
from ..logging import get_logger
from ..models import FileEntry, ImportantFiles, StructureReport
from .classifier import aggregate, classify

_LOGGER = get_logger("analyzers.structure")

_ENTRY_FILES = frozenset(
    {
        "index.js",
        "index.ts",
        "main.js",
        "main.ts",
        "app.js",
        "app.ts",
        "server.js",
        "server.ts",
        "main.py",
        "app.py",
        "__main__.py",
        "manage.py",
        "main.go",
        "main.rs",
        "program.cs",
        "main.java",
        "application.java",
    }
)

_BUILD_FILES = frozenset(
    {
        "dockerfile",
        "docker-compose.yml",
        "docker-compose.yaml",
        "makefile",
        "jenkinsfile",
        "webpack.config.js",
        "vite.config.js",
        "vite.config.ts",
        "rollup.config.js",
        "build.gradle",
        "build.gradle.kts",
        "cmakelists.txt",
        ".gitlab-ci.yml",
    }
)

# First matching manifest wins.
_PROJECT_TYPES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("package.json",), "Node.js"),
    (("requirements.txt", "setup.py", "pyproject.toml", "Pipfile"), "Python"),
    (("pom.xml",), "Java (Maven)"),
    (("build.gradle", "build.gradle.kts"), "Java (Gradle)"),
    (("go.mod",), "Go"),
    (("Cargo.toml",), "Rust"),
    (("Gemfile",), "Ruby"),
    (("composer.json",), "PHP"),
)


class StructureAnalyzer:
    """Summarises the scanned tree for the structure section of a result."""

    def __init__(
        self,
        reader: Optional[Callable[[FileEntry], str]] = None,
        *,
        max_directories: int = 100,
        max_listed_files: int = 50,
    ) -> None:
        self._reader = reader
        self.max_directories = max_directories
        self.max_listed_files = max_listed_files

    def analyze(self, files: Sequence[FileEntry]) -> StructureReport:
        regular = [entry for entry in files if not entry.is_directory]
        paths = [entry.relative_path for entry in regular]
        totals = aggregate(paths)
        project_type, confidence = detect_project_type(regular)

        config_files: List[str] = []
        doc_files: List[str] = []
        test_files = 0
        for entry in regular:
            info = classify(entry.relative_path)
            if info.is_config:
                config_files.append(entry.relative_path)
            if info.is_doc:
                doc_files.append(entry.relative_path)
            if info.is_test:
                test_files += 1

        return StructureReport(
            total_files=len(regular),
            total_size=sum(entry.size for entry in regular),
            total_lines=self._count_lines(regular),
            language_distribution=totals.language_distribution,
            file_type_distribution=totals.file_type_distribution,
            directories=[entry.relative_path for entry in files if entry.is_directory][: self.max_directories],
            important_files=self._important_files(regular),
            configuration_files=config_files[: self.max_listed_files],
            documentation_files=doc_files[: self.max_listed_files],
            test_files=test_files,
            project_type=project_type,
            project_type_confidence=confidence,
        )

    def _important_files(self, files: Sequence[FileEntry]) -> ImportantFiles:
        important = ImportantFiles()
        for entry in files:
            lowered = entry.name.lower()
            info = classify(entry.relative_path)
            if lowered in _ENTRY_FILES:
                important.entry.append(entry.relative_path)
            if info.is_config:
                important.configuration.append(entry.relative_path)
            if lowered.startswith("readme"):
                important.documentation.append(entry.relative_path)
            if info.is_test:
                important.tests.append(entry.relative_path)
            if lowered in _BUILD_FILES or entry.relative_path.startswith(".github/workflows/"):
                important.build.append(entry.relative_path)
        limit = self.max_listed_files
        return ImportantFiles(
            entry=important.entry[:limit],
            configuration=important.configuration[:limit],
            documentation=important.documentation[:limit],
            tests=important.tests[:limit],
            build=important.build[:limit],
        )

    def _count_lines(self, files: Sequence[FileEntry]) -> int:
        if self._reader is None:
            return 0
        total = 0
        for entry in files:
            if not classify(entry.relative_path).is_code:
                continue
            try:
                content = self._reader(entry)
            except ReadError as exc:
                _LOGGER.debug("Not counting lines of %s: %s", entry.relative_path, exc)
                continue
            if content:
                total += content.count("\n") + (0 if content.endswith("\n") else 1)
        return total


def detect_project_type(files: Sequence[FileEntry]) -> Tuple[str, float]:
    """Return the project type implied by manifests, else the dominant language."""
    names = {entry.name for entry in files if not entry.is_directory}
    for manifests, project_type in _PROJECT_TYPES:
        if names.intersection(manifests):
            return project_type, 1.0

    distribution = aggregate(entry.relative_path for entry in files if not entry.is_directory).language_distribution
    if not distribution:
        return "Unknown", 0.0
    language, count = max(distribution.items(), key=lambda item: item[1])
    return language, round(count / sum(distribution.values()), 2)


__all__ = ["StructureAnalyzer", "detect_project_type"]
