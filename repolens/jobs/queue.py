"""Celery transport for queued analysis jobs.

Submissions are published to one Celery task. The task runs the handler under a
bounded exponential retry policy, and brokers redeliver the message of a worker
that died mid-job because messages are acknowledged only after the task ends.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence, Type

from celery import Celery
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import QueueConfig
from ..logging import get_logger

TASK_RUN_ANALYSIS = "repolens.run_analysis"

MessageHandler = Callable[[Dict[str, Any], int], Any]


class QueuedPayload(Protocol):
    def to_dict(self) -> Dict[str, Any]:
        ...


def create_celery_app(settings: QueueConfig, name: str = "repolens") -> Celery:
    """Create a Celery application configured from the queue settings."""
    app = Celery(name)
    app.conf.update(
        broker_url=settings.broker_url,
        result_backend=settings.result_backend,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_always_eager=settings.eager,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        task_acks_on_failure_or_timeout=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=settings.concurrency,
        worker_hijack_root_logger=False,
        broker_transport_options={"visibility_timeout": settings.visibility_timeout},
    )
    return app


def retry_policy(
    settings: QueueConfig,
    *,
    give_up_on: Sequence[Type[BaseException]] = (),
    logger: logging.Logger | None = None,
) -> Retrying:
    """Retry up to ``attempts`` times, waiting ``backoff * 2**(n-1)`` seconds before retry n."""
    return Retrying(
        stop=stop_after_attempt(settings.attempts),
        wait=wait_exponential(multiplier=settings.backoff_seconds, max=settings.max_backoff_seconds),
        retry=retry_if_not_exception_type(tuple(give_up_on)),
        before_sleep=before_sleep_log(logger or get_logger("jobs.queue"), logging.WARNING),
        reraise=True,
    )


class CeleryJobQueue:
    """Job transport that hands each payload to the ``repolens.run_analysis`` task.

    ``handler`` receives the decoded message and the attempt number. Exceptions
    listed in ``give_up_on`` end the job without a retry. ``on_settled`` runs once
    per message after its last attempt, whatever the outcome.
    """

    def __init__(
        self,
        app: Celery,
        handler: MessageHandler,
        settings: QueueConfig,
        *,
        give_up_on: Sequence[Type[BaseException]] = (),
        on_settled: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> None:
        self.app = app
        self.settings = settings
        self._handler = handler
        self._give_up_on = tuple(give_up_on)
        self._on_settled = on_settled
        self.logger = get_logger("jobs.queue")

        @app.task(name=TASK_RUN_ANALYSIS, bind=True, ignore_result=True)
        def run_analysis(task: Any, message: Dict[str, Any]) -> None:
            delivery = task.request.delivery_info or {}
            if delivery.get("redelivered"):
                self.logger.warning("Message %s was redelivered after a worker loss", task.request.id)
            self.deliver(message)

        self.task = run_analysis

    def enqueue(self, payload: QueuedPayload) -> str:
        result = self.task.apply_async(args=[payload.to_dict()])
        self.logger.debug("Published %s as task %s", TASK_RUN_ANALYSIS, result.id)
        return result.id

    def deliver(self, message: Mapping[str, Any]) -> Any:
        """Run the handler for one message under the retry policy."""
        data = dict(message)
        try:
            for attempt in retry_policy(self.settings, give_up_on=self._give_up_on, logger=self.logger):
                with attempt:
                    return self._handler(data, attempt.retry_state.attempt_number)
        finally:
            if self._on_settled is not None:
                self._on_settled(data)
        return None  # pragma: no cover - Retrying either returns or raises

    def run_worker(self, argv: Optional[Sequence[str]] = None) -> None:
        """Consume queued jobs in this process until the worker is stopped."""
        args = ["worker", f"--concurrency={self.settings.concurrency}", "--loglevel=INFO"]
        self.app.worker_main(args + list(argv or []))


__all__ = [
    "CeleryJobQueue",
    "MessageHandler",
    "TASK_RUN_ANALYSIS",
    "create_celery_app",
    "retry_policy",
]
