"""Job state storage behind the orchestrator."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, List, Optional, Protocol

from ..models import AnalysisJob

DEFAULT_MAX_FINISHED = 100


class JobStore(Protocol):
    def get(self, job_id: str) -> Optional[AnalysisJob]:
        ...

    def put(self, job: AnalysisJob) -> None:
        ...

    def delete(self, job_id: str) -> None:
        ...

    def list_active(self) -> List[AnalysisJob]:
        ...


class InMemoryJobStore:
    """Thread-safe dictionary of jobs keyed by id.

    Only the ``max_finished`` most recently finished jobs are kept; older
    completed or failed jobs are evicted as new ones finish.
    """

    def __init__(self, max_finished: int = DEFAULT_MAX_FINISHED) -> None:
        self._jobs: Dict[str, AnalysisJob] = {}
        self._finished: "OrderedDict[str, None]" = OrderedDict()
        self._max_finished = max(0, max_finished)
        self._lock = threading.Lock()

    def get(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def put(self, job: AnalysisJob) -> None:
        with self._lock:
            self._jobs[job.id] = job
            if not job.state.terminal:
                return
            self._finished[job.id] = None
            self._finished.move_to_end(job.id)
            while len(self._finished) > self._max_finished:
                evicted, _ = self._finished.popitem(last=False)
                self._jobs.pop(evicted, None)

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)
            self._finished.pop(job_id, None)

    def list_active(self) -> List[AnalysisJob]:
        with self._lock:
            return [job for job in self._jobs.values() if not job.state.terminal]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


__all__ = ["DEFAULT_MAX_FINISHED", "InMemoryJobStore", "JobStore"]
