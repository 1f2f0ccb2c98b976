"""File classification, framework detection and layout analysis."""

from .classifier import AnalyzeOptions, FileClassification, aggregate, classify, should_analyze
from .frameworks import FrameworkDetector, ProjectStack, detect_frameworks, detect_project_stack
from .structure import StructureAnalyzer, detect_project_type

__all__ = [
    "AnalyzeOptions",
    "FileClassification",
    "FrameworkDetector",
    "ProjectStack",
    "StructureAnalyzer",
    "aggregate",
    "classify",
    "detect_frameworks",
    "detect_project_stack",
    "detect_project_type",
    "should_analyze",
]
