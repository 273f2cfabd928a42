"""
stages.py

Job-type tags understood by the workers and the two ordered stages of the
full sync pipeline.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .state import OrchestrationState


SYNC_PRODUCTS = "sync:products"
SYNC_CUSTOMERS = "sync:customers"
SYNC_PRICELISTS = "sync:pricelists"
SYNC_CUSTOMER_STATEMENTS = "sync:customer_statements"
SYNC_ORDERS = "sync:orders"
SYNC_INVOICES_AND_LINES = "sync:invoices_and_lines"
ORCHESTRATE_FULL_SYNC = "sync:orchestrate_full"

CORE_JOB_TYPES: Tuple[str, ...] = (
    SYNC_PRODUCTS,
    SYNC_CUSTOMERS,
    SYNC_PRICELISTS,
    SYNC_CUSTOMER_STATEMENTS,
)
# Orders and invoices reference products, customers and pricelists.
ORDER_JOB_TYPES: Tuple[str, ...] = (
    SYNC_ORDERS,
    SYNC_INVOICES_AND_LINES,
)

CORE_STAGE = "core"
ORDER_STAGE = "order"


class StageDefinition(BaseModel):
    name: str
    job_types: Tuple[str, ...]
    barrier_key: str
    wait_timeout_seconds: float = Field(gt=0)
    poll_interval_seconds: float = Field(gt=0)
    wait_for_completion: bool = True
    enqueue_state: OrchestrationState
    wait_state: OrchestrationState

    @field_validator("job_types")
    @classmethod
    def _job_types_unique(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("A stage needs at least one job type")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate job types in stage: {list(v)}")
        return v

    @property
    def target_count(self) -> int:
        return len(self.job_types)


def build_default_stages(config) -> List[StageDefinition]:
    """Builds the core and order stages from an AppConfig."""
    return [
        StageDefinition(
            name=CORE_STAGE,
            job_types=CORE_JOB_TYPES,
            barrier_key=config.core_barrier_key,
            wait_timeout_seconds=config.core_timeout_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
            enqueue_state=OrchestrationState.STAGE1_ENQUEUE,
            wait_state=OrchestrationState.STAGE1_WAIT,
        ),
        StageDefinition(
            name=ORDER_STAGE,
            job_types=ORDER_JOB_TYPES,
            barrier_key=config.order_barrier_key,
            wait_timeout_seconds=config.order_timeout_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
            wait_for_completion=config.wait_for_stage2,
            enqueue_state=OrchestrationState.STAGE2_ENQUEUE,
            wait_state=OrchestrationState.STAGE2_WAIT,
        ),
    ]


def barrier_key_for_job(stages: List[StageDefinition], job_type: str) -> Optional[str]:
    """
    Returns the barrier a job of this type signals, or None when its stage is
    not waited on.
    """
    for stage in stages:
        if job_type in stage.job_types:
            return stage.barrier_key if stage.wait_for_completion else None
    raise KeyError(f"Job type '{job_type}' does not belong to any stage")
