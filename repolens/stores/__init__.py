"""Persistence and job-state stores."""

from .analysis_store import AnalysisStore, InMemoryAnalysisStore, JsonAnalysisStore, StatusRecord
from .job_store import InMemoryJobStore, JobStore

__all__ = [
    "AnalysisStore",
    "InMemoryAnalysisStore",
    "InMemoryJobStore",
    "JobStore",
    "JsonAnalysisStore",
    "StatusRecord",
]
