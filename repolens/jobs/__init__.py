"""Background job execution for analysis requests."""

from .queue import TASK_RUN_ANALYSIS, CeleryJobQueue, create_celery_app, retry_policy

__all__ = ["CeleryJobQueue", "TASK_RUN_ANALYSIS", "create_celery_app", "retry_policy"]
