# File: tasks/sync_tasks.py

import logging
from typing import Any, Dict, Optional

from celery import Task

# === fieldsync's Celery App ===
from fieldsync_celery import celery_app

from core.orchestrator.exceptions import StoreUnavailable
from core.orchestrator.stages import (
    ORCHESTRATE_FULL_SYNC,
    SYNC_CUSTOMER_STATEMENTS,
    SYNC_CUSTOMERS,
    SYNC_INVOICES_AND_LINES,
    SYNC_ORDERS,
    SYNC_PRICELISTS,
    SYNC_PRODUCTS,
)
from tasks.completion import run_stage_job
from tasks.handlers import resolve_sync_handler
from tasks.runtime import SyncRuntime, build_runtime

logger = logging.getLogger(__name__)


class CoordinatedTask(Task):
    """
    Task base class holding the worker's coordination handles. Celery creates
    one task instance per process, so the runtime is built once per worker.
    """
    _runtime: Optional[SyncRuntime] = None

    @property
    def runtime(self) -> SyncRuntime:
        if self._runtime is None:
            self._runtime = build_runtime(self.app.sync_config, self.app)
        return self._runtime


def run_sync_job(task: CoordinatedTask, job_type: str) -> Any:
    runtime = task.runtime

    def handler():
        # Resolved per attempt so a missing registration counts as a failed attempt.
        return resolve_sync_handler(job_type)()

    return run_stage_job(
        task,
        job_type=job_type,
        handler=handler,
        barrier=runtime.barrier,
        barrier_key=runtime.barrier_key_for(job_type),
    )


STAGE_JOB_OPTIONS: Dict[str, Any] = dict(
    bind=True,
    base=CoordinatedTask,
    max_retries=celery_app.sync_config.job_max_retries,
    default_retry_delay=celery_app.sync_config.job_retry_delay_seconds,
)


# === Stage 1: core data ===
@celery_app.task(name=SYNC_PRODUCTS, **STAGE_JOB_OPTIONS)
def sync_products(self):
    return run_sync_job(self, SYNC_PRODUCTS)


@celery_app.task(name=SYNC_CUSTOMERS, **STAGE_JOB_OPTIONS)
def sync_customers(self):
    return run_sync_job(self, SYNC_CUSTOMERS)


@celery_app.task(name=SYNC_PRICELISTS, **STAGE_JOB_OPTIONS)
def sync_pricelists(self):
    return run_sync_job(self, SYNC_PRICELISTS)


@celery_app.task(name=SYNC_CUSTOMER_STATEMENTS, **STAGE_JOB_OPTIONS)
def sync_customer_statements(self):
    return run_sync_job(self, SYNC_CUSTOMER_STATEMENTS)


# === Stage 2: order data ===
@celery_app.task(name=SYNC_ORDERS, **STAGE_JOB_OPTIONS)
def sync_orders(self):
    return run_sync_job(self, SYNC_ORDERS)


@celery_app.task(name=SYNC_INVOICES_AND_LINES, **STAGE_JOB_OPTIONS)
def sync_invoices_and_lines(self):
    return run_sync_job(self, SYNC_INVOICES_AND_LINES)


# === Orchestration (beat schedule, worker start-up, or manual .delay()) ===
@celery_app.task(
    name=ORCHESTRATE_FULL_SYNC,
    bind=True,
    base=CoordinatedTask,
    autoretry_for=(StoreUnavailable,),
    max_retries=celery_app.sync_config.job_max_retries,
    retry_backoff=True,
)
def orchestrate_full_sync(self) -> Dict[str, Any]:
    run = self.runtime.orchestrator().run(run_id=self.request.id)
    logger.info(f"Orchestration {run.run_id} finished in state {run.state.value}")
    return run.model_dump(mode="json")
