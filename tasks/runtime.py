# File: tasks/runtime.py

import logging
from dataclasses import dataclass
from typing import List, Optional

from celery import Celery

from core.coordination.barrier import StageBarrier
from core.coordination.lock import DistributedLock
from core.coordination.redis_store import CoordinationStore
from core.orchestrator.main_orchestrator import QueueBroker, SyncOrchestrator
from core.orchestrator.stages import StageDefinition, barrier_key_for_job, build_default_stages
from shared.app_config import AppConfig
from tasks.broker import CeleryQueueBroker

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    """The coordination handles one worker process shares between its tasks."""

    config: AppConfig
    store: CoordinationStore
    lock: DistributedLock
    barrier: StageBarrier
    broker: QueueBroker
    stages: List[StageDefinition]

    def orchestrator(self) -> SyncOrchestrator:
        return SyncOrchestrator(
            lock=self.lock,
            barrier=self.barrier,
            broker=self.broker,
            stages=self.stages,
            lock_key=self.config.lock_key,
            lock_ttl_seconds=self.config.lock_ttl_seconds,
        )

    def barrier_key_for(self, job_type: str) -> Optional[str]:
        return barrier_key_for_job(self.stages, job_type)


def build_runtime(config: AppConfig, celery_app: Celery) -> SyncRuntime:
    store = CoordinationStore.from_url(config.redis_url, key_prefix=config.key_prefix)
    runtime = SyncRuntime(
        config=config,
        store=store,
        lock=DistributedLock(store),
        barrier=StageBarrier(store),
        broker=CeleryQueueBroker(celery_app),
        stages=build_default_stages(config),
    )
    logger.info(
        f"Sync runtime ready: lock '{config.lock_key}' ttl={config.lock_ttl_seconds}s, "
        f"stages={[s.name for s in runtime.stages]}, wait_for_stage2={config.wait_for_stage2}"
    )
    return runtime
