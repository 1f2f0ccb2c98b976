"""Replaceable scoring policy for the result metrics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from .models import DatabaseConnectionSignal, LibraryDependency

_UNPINNED_VERSIONS = {"", "*", "latest", "x"}


@dataclass(frozen=True)
class ScoringInputs:
    """Counts gathered from one analysis run."""

    total_files: int
    total_lines: int
    test_files: int
    frameworks: int
    api_calls: int
    languages: int
    dependencies: Sequence[LibraryDependency] = ()
    database_connections: Sequence[DatabaseConnectionSignal] = ()


@dataclass
class ScoringPolicy:
    """Threshold tables behind complexity, maintainability and debt metrics.

    Each threshold a count strictly exceeds earns one point; the complexity
    score is ``points * points_scale`` capped at 100.
    """

    file_thresholds: Tuple[int, ...] = (100, 500, 1000)
    framework_thresholds: Tuple[int, ...] = (1, 3, 5)
    api_call_thresholds: Tuple[int, ...] = (20, 50, 100)
    dependency_thresholds: Tuple[int, ...] = (20, 50, 100)
    language_thresholds: Tuple[int, ...] = (3, 5)
    points_scale: float = 10.0
    complexity_weight: float = 0.5
    long_file_lines: int = 300
    long_file_penalty_cap: float = 20.0
    test_bonus: float = 5.0

    def complexity_score(self, inputs: ScoringInputs) -> int:
        points = 0
        points += _points(inputs.total_files, self.file_thresholds)
        points += _points(inputs.frameworks, self.framework_thresholds)
        points += _points(inputs.api_calls, self.api_call_thresholds)
        points += _points(len(inputs.dependencies), self.dependency_thresholds)
        points += _points(inputs.languages, self.language_thresholds)
        return int(min(points * self.points_scale, 100))

    def maintainability_index(self, inputs: ScoringInputs) -> float:
        score = 100.0 - self.complexity_score(inputs) * self.complexity_weight
        if inputs.total_files:
            average = inputs.total_lines / inputs.total_files
            if average > self.long_file_lines:
                score -= min((average - self.long_file_lines) / 10, self.long_file_penalty_cap)
        if inputs.test_files:
            score += self.test_bonus
        return round(max(0.0, min(score, 100.0)), 1)

    def technical_debt_ratio(self, inputs: ScoringInputs) -> float:
        """Share of dependencies without a pinned version and credentialed connection strings."""
        total = len(inputs.dependencies) + len(inputs.database_connections)
        if not total:
            return 0.0
        unpinned = sum(
            1
            for dep in inputs.dependencies
            if (dep.version or "").strip().lower() in _UNPINNED_VERSIONS
        )
        credentialed = sum(
            1
            for conn in inputs.database_connections
            if conn.connection_string and "****" in conn.connection_string
        )
        return round((unpinned + credentialed) / total, 3)


def _points(value: int, thresholds: Sequence[int]) -> int:
    return sum(1 for threshold in thresholds if value > threshold)


__all__ = ["ScoringInputs", "ScoringPolicy"]
