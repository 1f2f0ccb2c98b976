from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

import pytest
from tenacity import RetryCallState

from repolens.config import QueueConfig
from repolens.jobs import TASK_RUN_ANALYSIS, CeleryJobQueue, create_celery_app, retry_policy


@dataclass(frozen=True)
class _Payload:
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name}


def _settings(**overrides: Any) -> QueueConfig:
    settings = QueueConfig(broker_url="memory://", eager=True, backoff_seconds=0.0)
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


def _queue(handler, settings: QueueConfig | None = None, **kwargs: Any) -> CeleryJobQueue:  # type: ignore[no-untyped-def]
    settings = settings or _settings()
    return CeleryJobQueue(create_celery_app(settings), handler, settings, **kwargs)


def test_celery_app_redelivers_unacknowledged_jobs() -> None:
    app = create_celery_app(QueueConfig(broker_url="memory://", concurrency=3, visibility_timeout=120.0))

    assert app.conf.broker_url == "memory://"
    assert app.conf.task_acks_late is True
    assert app.conf.task_reject_on_worker_lost is True
    assert app.conf.worker_prefetch_multiplier == 1
    assert app.conf.worker_concurrency == 3
    assert app.conf.broker_transport_options == {"visibility_timeout": 120.0}
    assert app.conf.task_always_eager is False


def test_failed_delivery_is_retried_until_it_succeeds() -> None:
    attempts: List[int] = []
    settled: List[Dict[str, Any]] = []

    def handler(message: Dict[str, Any], attempt: int) -> str:
        attempts.append(attempt)
        if attempt < 3:
            raise RuntimeError("boom")
        return f"{message['name']} done"

    job_queue = _queue(handler, on_settled=settled.append)
    job_queue.enqueue(_Payload("job-1"))

    assert job_queue.task.name == TASK_RUN_ANALYSIS
    assert attempts == [1, 2, 3]
    assert settled == [{"name": "job-1"}]


def test_attempts_are_bounded() -> None:
    attempts: List[int] = []
    settled: List[Dict[str, Any]] = []

    def handler(message: Dict[str, Any], attempt: int) -> None:
        attempts.append(attempt)
        raise RuntimeError(f"attempt {attempt} failed")

    job_queue = _queue(handler, _settings(attempts=2), on_settled=settled.append)

    with pytest.raises(RuntimeError, match="attempt 2 failed"):
        job_queue.deliver({"name": "job-1"})

    assert attempts == [1, 2]
    assert settled == [{"name": "job-1"}]


def test_give_up_exceptions_are_not_retried() -> None:
    attempts: List[int] = []

    class Stop(Exception):
        pass

    def handler(message: Dict[str, Any], attempt: int) -> None:
        attempts.append(attempt)
        raise Stop("cancelled")

    job_queue = _queue(handler, give_up_on=(Stop,))

    with pytest.raises(Stop):
        job_queue.deliver({"name": "job-1"})

    assert attempts == [1]


def test_successful_delivery_returns_handler_result() -> None:
    job_queue = _queue(lambda message, attempt: (message["name"], attempt))

    assert job_queue.deliver({"name": "job-1"}) == ("job-1", 1)


def test_retry_policy_waits_exponentially_up_to_the_cap() -> None:
    policy = retry_policy(QueueConfig(attempts=5, backoff_seconds=5.0, max_backoff_seconds=12.0))
    state = RetryCallState(retry_object=policy, fn=None, args=(), kwargs={})

    waits = []
    for attempt_number in (1, 2, 3):
        state.attempt_number = attempt_number
        waits.append(policy.wait(state))

    assert waits == [5.0, 10.0, 12.0]


def test_run_worker_starts_celery_worker_with_configured_concurrency(monkeypatch: pytest.MonkeyPatch) -> None:
    job_queue = _queue(lambda message, attempt: None, _settings(concurrency=4))
    calls: List[List[str]] = []
    monkeypatch.setattr(job_queue.app, "worker_main", lambda argv: calls.append(argv))

    job_queue.run_worker(["--queues=analysis"])

    assert calls == [["worker", "--concurrency=4", "--loglevel=INFO", "--queues=analysis"]]
