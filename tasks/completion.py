# File: tasks/completion.py

import logging
from typing import Any, Optional

from celery import Task
from celery.exceptions import Retry

from core.coordination.barrier import StageBarrier
from core.orchestrator.exceptions import StoreUnavailable
from tasks.handlers import SyncHandler

logger = logging.getLogger(__name__)


def signal_stage_completion(barrier: StageBarrier, barrier_key: Optional[str], job_type: str) -> Optional[int]:
    """
    Decrements the stage barrier for a job that reached a terminal state.
    A store failure is logged rather than raised so that it never hides the
    job's own outcome; the orchestrator then sees the stage time out.
    """
    if barrier_key is None:
        logger.debug(f"{job_type}: stage is not tracked by a barrier, nothing to signal")
        return None
    try:
        return barrier.signal(barrier_key)
    except StoreUnavailable as e:
        logger.error(f"⚠️  {job_type}: failed to signal barrier '{barrier_key}': {e}", exc_info=True)
        return None


def run_stage_job(
    task: Task,
    job_type: str,
    handler: SyncHandler,
    barrier: StageBarrier,
    barrier_key: Optional[str],
) -> Any:
    """
    Runs one attempt of a stage job and signals its barrier exactly once, on the
    attempt that turns out to be terminal: a success, or a failure with no
    retries left. Failed attempts that still have retries schedule a Celery
    retry and leave the barrier alone.
    """
    attempt = task.request.retries + 1
    terminal = False
    try:
        logger.info(f"🔄 {job_type}: starting (attempt {attempt}/{task.max_retries + 1})")
        result = handler()
        terminal = True
        logger.info(f"✅ {job_type}: completed")
        return result
    except Exception as e:
        if task.request.retries < task.max_retries:
            logger.warning(f"{job_type}: attempt {attempt} failed, retrying: {e}")
            try:
                raise task.retry(exc=e)
            except Retry:
                raise
            except Exception:
                # The retry could not be published, so no further attempt will run.
                terminal = True
                logger.exception(f"❌ {job_type}: could not schedule retry")
                raise
        terminal = True
        logger.error(f"❌ {job_type}: failed permanently after {attempt} attempt(s): {e}", exc_info=True)
        raise
    finally:
        if terminal:
            signal_stage_completion(barrier, barrier_key, job_type)
