"""Job orchestration for the clone → scan → analyze → generate pipeline."""

from __future__ import annotations

import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Set

from celery import Celery

from .analyzers.classifier import AnalyzeOptions
from .analyzers.frameworks import FrameworkDetector, detect_project_stack
from .analyzers.structure import StructureAnalyzer
from .config import RepolensConfig
from .errors import AnalysisCancelledError, InvalidTransitionError, PersistenceError
from .extractors.signals import DependencySignalExtractor, ExtractedSignals
from .graph import DependencyGraphBuilder
from .jobs.queue import CeleryJobQueue, create_celery_app
from .logging import get_logger
from .models import (
    AnalysisJob,
    AnalysisResult,
    DependencyGraph,
    DetectedFramework,
    FileEntry,
    JobState,
    Metrics,
    ProgressEvent,
    ProjectSummary,
    StructureReport,
    can_transition,
)
from .repo_scanner import RepositoryFetcher
from .scoring import ScoringInputs
from .stores.analysis_store import AnalysisStore, InMemoryAnalysisStore, StatusRecord
from .stores.job_store import InMemoryJobStore, JobStore

ProgressListener = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class AnalysisRequest:
    project_id: str
    repository_url: str
    branch: Optional[str] = None
    depth: Optional[int] = None


@dataclass(frozen=True)
class QueuedAnalysis:
    """Payload handed to a job transport; ``job_id`` names the first attempt."""

    request: AnalysisRequest
    job_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"job_id": self.job_id, "request": asdict(self.request)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QueuedAnalysis":
        return cls(request=AnalysisRequest(**data["request"]), job_id=str(data["job_id"]))


class JobTransport(Protocol):
    def enqueue(self, payload: QueuedAnalysis) -> None:
        ...


class AnalysisOrchestrator:
    """Runs analysis jobs as a forward-only state machine with progress checkpoints."""

    def __init__(
        self,
        store: AnalysisStore | None = None,
        *,
        config: RepolensConfig | None = None,
        fetcher: RepositoryFetcher | None = None,
        job_store: JobStore | None = None,
        signal_extractor: DependencySignalExtractor | None = None,
        graph_builder: DependencyGraphBuilder | None = None,
        transport: JobTransport | None = None,
        listeners: Optional[Iterable[ProgressListener]] = None,
    ) -> None:
        self.config = config or RepolensConfig()
        self.store = store if store is not None else InMemoryAnalysisStore()
        self.fetcher = fetcher or RepositoryFetcher(
            self.config.workspace.root,
            max_file_size=self.config.workspace.max_file_size,
            extra_ignores=self.config.scan.extra_ignores,
            default_ignores=self.config.scan.default_ignores,
        )
        self.jobs = job_store if job_store is not None else InMemoryJobStore()
        self.signal_extractor = signal_extractor or DependencySignalExtractor(
            self.fetcher.read_file_content,
            options=AnalyzeOptions(include_tests=self.config.extraction.include_tests),
        )
        self.graph_builder = graph_builder or DependencyGraphBuilder()
        self.transport = transport
        self.logger = get_logger("orchestrator")
        self._listeners: List[ProgressListener] = list(listeners or [])
        self._cancellations: Dict[str, str] = {}
        # queued payload job id -> job id of the attempt running for it, until the payload settles
        self._attempts: Dict[str, str] = {}
        # in-flight payloads whose running attempt was cancelled; they are not retried
        self._cancelled: Set[str] = set()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def create_job(
        self, request: AnalysisRequest, *, attempt: int = 1, job_id: str | None = None
    ) -> AnalysisJob:
        job = AnalysisJob(id=job_id or uuid.uuid4().hex, project_id=request.project_id, attempt=attempt)
        self.jobs.put(job)
        self._persist_status(job)
        return job

    def submit(self, request: AnalysisRequest) -> AnalysisJob:
        """Queue a job when a transport is configured, otherwise run it inline.

        Inline failures are re-raised after the job has been marked failed.
        """
        job = self.create_job(request)
        if self.transport is not None:
            self.transport.enqueue(QueuedAnalysis(request=request, job_id=job.id))
            self.logger.info("Queued analysis job %s for project %s", job.id, request.project_id)
            return job
        self.run(request, job=job)
        return job

    def process(self, payload: QueuedAnalysis, attempt: int = 1) -> Optional[AnalysisResult]:
        """Queue handler: the first attempt reuses the submitted job, retries start fresh.

        Payloads cancelled by a caller are dropped instead of being retried. A
        worker that never saw the submission creates the first attempt under the
        payload's job id.
        """
        root = self.jobs.get(payload.job_id)
        with self._lock:
            if payload.job_id in self._cancelled or (root is not None and root.cancelled):
                self.logger.info("Skipping cancelled analysis %s (attempt %d)", payload.job_id, attempt)
                return None
        job = root if attempt == 1 else None
        if job is None:
            job = self.create_job(
                payload.request, attempt=attempt, job_id=payload.job_id if attempt == 1 else None
            )
        with self._lock:
            self._attempts[payload.job_id] = job.id
        return self.run(payload.request, job=job)

    def release(self, payload: QueuedAnalysis) -> None:
        """Forget a queued payload's bookkeeping once it will not run again."""
        with self._lock:
            current = self._attempts.pop(payload.job_id, None)
            self._cancelled.discard(payload.job_id)
            self._cancellations.pop(payload.job_id, None)
            if current is not None:
                self._cancellations.pop(current, None)

    def run(self, request: AnalysisRequest, *, job: AnalysisJob | None = None) -> AnalysisResult:
        """Execute the whole pipeline for one job and return its result."""
        job = job or self.create_job(request)
        if job.state is not JobState.PENDING:
            raise AnalysisCancelledError(job.error or f"Job {job.id} is no longer pending")

        self.logger.info("Starting analysis job %s for %s", job.id, request.repository_url)
        try:
            result = self._execute(job, request)
        except Exception as exc:
            self._fail(job, exc)
            raise
        finally:
            with self._lock:
                self._cancellations.pop(job.id, None)
        self.logger.info("Analysis job %s completed", job.id)
        return result

    def start_queue(self, app: Celery | None = None) -> CeleryJobQueue:
        """Route submissions through a Celery task built from the queue settings.

        Failed attempts are retried with exponential backoff; cancelled jobs are not.
        """
        settings = self.config.queue
        job_queue = CeleryJobQueue(
            app or create_celery_app(settings),
            self._process_message,
            settings,
            give_up_on=(AnalysisCancelledError,),
            on_settled=self._release_message,
        )
        self.transport = job_queue
        return job_queue

    def cancel(self, job_id: str, reason: str = "cancelled by user") -> bool:
        """Request cancellation; running work stops at the next stage boundary."""
        with self._lock:
            self._cancelled.update(
                root for root, current in self._attempts.items() if job_id in (root, current)
            )
        return self._request_cancel(job_id, reason)

    def _request_cancel(self, job_id: str, reason: str) -> bool:
        with self._lock:
            job = self.jobs.get(job_id)
            if job is None or job.state.terminal:
                return False
            message = f"Cancelled: {reason}"
            job.cancelled = True
            if job.state is JobState.PENDING:
                self._mark_failed(job, message)
            else:
                self._cancellations[job_id] = message
        self.logger.info("Cancellation requested for job %s", job_id)
        return True

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        return self.jobs.get(job_id)

    def active_jobs(self) -> List[AnalysisJob]:
        return self.jobs.list_active()

    # ------------------------------------------------------------------
    # Pipeline

    def _execute(self, job: AnalysisJob, request: AnalysisRequest) -> AnalysisResult:
        clone = self.config.clone
        self._advance(job, JobState.CLONING, 10, "Cloning repository")
        repo_path = self.fetcher.clone(
            request.repository_url,
            job.project_id,
            job.id,
            branch=request.branch or clone.branch,
            depth=request.depth if request.depth is not None else clone.depth,
        )

        self._advance(job, JobState.SCANNING, 20, "Scanning files")
        files = self.fetcher.scan(repo_path)

        self._advance(job, JobState.ANALYZING, 40, "Detecting frameworks")
        reader = self.fetcher.read_file_content
        extraction = self.config.extraction
        structure = StructureAnalyzer(
            reader,
            max_directories=extraction.max_directories,
            max_listed_files=extraction.max_listed_files,
        ).analyze(files)
        frameworks = FrameworkDetector(reader).detect(files)

        self._checkpoint(job, 60, "Extracting dependencies")
        signals = self.signal_extractor.extract_all(files)

        self._advance(job, JobState.GENERATING, 80, "Building dependency graph")
        graph = self.graph_builder.build(
            frameworks=frameworks,
            files=files,
            api_calls=signals.api_calls,
            database_connections=signals.database_connections,
            dependencies=signals.dependencies,
        )

        self._checkpoint(job, 90, "Saving results")
        result = self._assemble(files, structure, frameworks, signals, graph)
        self.store.create_analysis_result(job.project_id, result.to_dict())
        self.store.update_project(job.project_id, status="completed", last_analyzed_at=_now())
        self.fetcher.cleanup(job.project_id, job.id)

        self._advance(job, JobState.COMPLETED, 100, "Analysis completed")
        return result

    def _assemble(
        self,
        files: Sequence[FileEntry],
        structure: StructureReport,
        frameworks: List[DetectedFramework],
        signals: ExtractedSignals,
        graph: DependencyGraph,
    ) -> AnalysisResult:
        stack = detect_project_stack(frameworks, files)
        limits = self.config.extraction
        scoring = self.config.scoring
        inputs = ScoringInputs(
            total_files=structure.total_files,
            total_lines=structure.total_lines,
            test_files=structure.test_files,
            frameworks=len(frameworks),
            api_calls=len(signals.api_calls),
            languages=len(structure.language_distribution),
            dependencies=signals.dependencies,
            database_connections=signals.database_connections,
        )
        return AnalysisResult(
            summary=ProjectSummary(
                project_type=structure.project_type,
                primary_language=stack.primary_language,
                stack=stack.stack,
                confidence=structure.project_type_confidence,
                description=f"{stack.primary_language} {stack.stack} project",
                frameworks=stack.frameworks,
                build_tools=stack.build_tools,
                databases=stack.databases,
            ),
            structure=structure,
            frameworks=frameworks,
            dependencies=signals.dependencies[: limits.max_dependencies],
            api_calls=signals.api_calls[: limits.max_api_calls],
            database_connections=signals.database_connections,
            environment_variables=[
                usage for usage in signals.environment_variables if usage.possible_type != "secret"
            ],
            dependency_graph=graph,
            metrics=Metrics(
                total_files=structure.total_files,
                total_lines=structure.total_lines,
                total_api_calls=len(signals.api_calls),
                total_database_connections=len(signals.database_connections),
                total_dependencies=len(signals.dependencies),
                total_frameworks=len(frameworks),
                complexity_score=scoring.complexity_score(inputs),
                maintainability_index=scoring.maintainability_index(inputs),
                technical_debt_ratio=scoring.technical_debt_ratio(inputs),
            ),
        )

    # ------------------------------------------------------------------
    # State machine

    def _advance(self, job: AnalysisJob, state: JobState, progress: int, step: str) -> None:
        with self._lock:
            if state is not JobState.COMPLETED:
                self._raise_if_cancelled(job)
            if not can_transition(job.state, state):
                raise InvalidTransitionError(f"Job {job.id} cannot move from {job.state.value} to {state.value}")
            job.state = state
            if job.started_at is None:
                job.started_at = _now()
            if state is JobState.COMPLETED:
                job.completed_at = _now()
                self._cancellations.pop(job.id, None)
            self._set_progress(job, progress, step)
        self.logger.info("Job %s: %s (%d%%)", job.id, step, progress)

    def _checkpoint(self, job: AnalysisJob, progress: int, step: str) -> None:
        with self._lock:
            self._raise_if_cancelled(job)
            self._set_progress(job, progress, step)
        self.logger.debug("Job %s: %s (%d%%)", job.id, step, progress)

    def _set_progress(self, job: AnalysisJob, progress: int, step: str) -> None:
        job.progress = max(job.progress, progress)
        job.current_step = step
        self.jobs.put(job)
        self._persist_status(job)

    def _raise_if_cancelled(self, job: AnalysisJob) -> None:
        message = self._cancellations.get(job.id)
        if message is not None:
            raise AnalysisCancelledError(message)

    def _process_message(self, message: Dict[str, Any], attempt: int) -> Optional[AnalysisResult]:
        return self.process(QueuedAnalysis.from_dict(message), attempt)

    def _release_message(self, message: Dict[str, Any]) -> None:
        self.release(QueuedAnalysis.from_dict(message))

    def _fail(self, job: AnalysisJob, exc: BaseException) -> None:
        message = str(exc) or exc.__class__.__name__
        self.logger.error("Analysis job %s failed: %s", job.id, message)
        with self._lock:
            self._cancellations.pop(job.id, None)
            if not job.state.terminal:
                self._mark_failed(job, message)
        try:
            self.store.update_project(job.project_id, status="failed", last_analyzed_at=_now())
        except PersistenceError as store_exc:
            self.logger.warning("Could not record failure for project %s: %s", job.project_id, store_exc)
        self.fetcher.cleanup(job.project_id, job.id)

    def _mark_failed(self, job: AnalysisJob, message: str) -> None:
        job.state = JobState.FAILED
        job.error = message
        job.current_step = "Analysis failed"
        job.completed_at = _now()
        self.jobs.put(job)
        try:
            self._persist_status(job)
        except PersistenceError as exc:
            self.logger.warning("Could not persist failure of job %s: %s", job.id, exc)

    def _persist_status(self, job: AnalysisJob) -> None:
        self.store.upsert_analysis_status(
            job.project_id,
            StatusRecord(
                status=job.state.value,
                progress=job.progress,
                current_step=job.current_step,
                error=job.error,
                completed_at=job.completed_at,
            ),
        )
        event = ProgressEvent(
            project_id=job.project_id,
            job_id=job.id,
            status=job.state.value,
            progress=job.progress,
            current_step=job.current_step,
            error=job.error,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # pragma: no cover - listeners are best effort
                self.logger.warning("Progress listener failed: %s", exc)


def _now() -> datetime:
    return datetime.now(UTC)


__all__ = [
    "AnalysisOrchestrator",
    "AnalysisRequest",
    "JobTransport",
    "ProgressListener",
    "QueuedAnalysis",
]
