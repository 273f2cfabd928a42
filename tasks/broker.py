# File: tasks/broker.py

import logging

from celery import Celery
from kombu.exceptions import OperationalError
from tenacity import (
    RetryError,
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from core.orchestrator.exceptions import EnqueueFailure

logger = logging.getLogger(__name__)

# --- Retry strategy for publishing to the broker ---
# Only connection-level errors are retried; anything else fails the enqueue at once.
ENQUEUE_RETRY_STRATEGY = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(OperationalError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
)


class CeleryQueueBroker:
    """Submits jobs by task name so the orchestrator never imports the task modules."""

    def __init__(self, celery_app: Celery, queue: str = None):
        self.celery_app = celery_app
        self.queue = queue

    def enqueue(self, job_type: str) -> str:
        try:
            async_result = self._send(job_type)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(f"Broker unreachable while enqueuing '{job_type}': {cause}")
            raise EnqueueFailure(f"Broker unreachable while enqueuing '{job_type}': {cause}", job_type=job_type) from cause
        except Exception as e:
            logger.error(f"Failed to enqueue '{job_type}': {e}", exc_info=True)
            raise EnqueueFailure(f"Failed to enqueue '{job_type}': {e}", job_type=job_type) from e
        logger.debug(f"Enqueued '{job_type}' as {async_result.id}")
        return async_result.id

    @ENQUEUE_RETRY_STRATEGY
    def _send(self, job_type: str):
        options = {"queue": self.queue} if self.queue else {}
        # tenacity owns publish retries
        return self.celery_app.send_task(job_type, retry=False, **options)
