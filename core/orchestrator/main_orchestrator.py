import logging
import uuid
from typing import List, Optional, Protocol, Sequence

from core.coordination.barrier import StageBarrier, WaitOutcome
from core.coordination.lock import DistributedLock
from .exceptions import BarrierTimeout, EnqueueFailure, OrchestrationError, StoreUnavailable
from .stages import StageDefinition
from .state import OrchestrationRun, OrchestrationState, utc_now_iso
from .trace_utils import start_span

logger = logging.getLogger(__name__) # Use specific logger for this module


class QueueBroker(Protocol):
    def enqueue(self, job_type: str) -> str:
        """Submits one job and returns its broker handle. Raises EnqueueFailure."""
        ...


class SyncOrchestrator:
    """
    Runs the staged sync pipeline once per call to run().

    A run holds the sync lock for its whole lifetime. Each stage initialises
    its barrier, enqueues every job of the stage and then blocks polling the
    barrier; the next stage is only started once the barrier reports done.
    Every abort path releases the lock.
    """

    def __init__(
        self,
        lock: DistributedLock,
        barrier: StageBarrier,
        broker: QueueBroker,
        stages: Sequence[StageDefinition],
        lock_key: str,
        lock_ttl_seconds: int,
    ):
        self.lock = lock
        self.barrier = barrier
        self.broker = broker
        self.stages: List[StageDefinition] = list(stages)
        self.lock_key = lock_key
        self.lock_ttl_seconds = lock_ttl_seconds

    def run(self, run_id: Optional[str] = None) -> OrchestrationRun:
        run = OrchestrationRun(
            run_id=run_id or uuid.uuid4().hex,
            lock_key=self.lock_key,
            lock_ttl_seconds=self.lock_ttl_seconds,
        )
        logger.info(f"🔄 Run {run.run_id}: starting full sync orchestration")

        with start_span("orchestration.run", **{"sync.run_id": run.run_id}) as span:
            self._transition(run, OrchestrationState.ACQUIRING_LOCK)
            # StoreUnavailable here propagates: no run is attempted.
            if not self.lock.acquire(self.lock_key, self.lock_ttl_seconds, sentinel=run.run_id):
                logger.info(f"⚠️  Run {run.run_id}: sync lock '{self.lock_key}' exists, skipping this trigger")
                self._transition(run, OrchestrationState.SKIPPED_LOCKED)
                span.set_attribute("sync.final_state", run.state.value)
                return run
            run.acquired_at = utc_now_iso()

            current_stage: Optional[StageDefinition] = None
            try:
                for stage in self.stages:
                    current_stage = stage
                    self._run_stage(run, stage)
            except (OrchestrationError, StoreUnavailable) as e:
                self._abort(run, current_stage, e)
            except Exception as e:
                logger.exception(f"Run {run.run_id}: unexpected error in stage '{current_stage.name if current_stage else '-'}'")
                self._abort(run, current_stage, e)
                raise
            else:
                self.lock.release(self.lock_key)
                self._transition(run, OrchestrationState.COMPLETED)
                logger.info(f"✅ Run {run.run_id}: full sync completed ({run.enqueued_count()} jobs)")

            span.set_attribute("sync.final_state", run.state.value)
        return run

    def _run_stage(self, run: OrchestrationRun, stage: StageDefinition) -> None:
        with start_span("orchestration.stage", **{"sync.run_id": run.run_id, "sync.stage": stage.name}):
            self._transition(run, stage.enqueue_state)
            if stage.wait_for_completion:
                self.barrier.init(stage.barrier_key, stage.target_count)

            logger.info(f"📦 Run {run.run_id}: enqueuing stage '{stage.name}' ({stage.target_count} jobs)")
            handles = run.enqueued.setdefault(stage.name, {})
            for job_type in stage.job_types:
                handles[job_type] = self._enqueue(run, stage, job_type)
                logger.info(f"   - {job_type} -> {handles[job_type]}")

            if not stage.wait_for_completion:
                logger.info(f"Run {run.run_id}: stage '{stage.name}' enqueued, not waiting for completion")
                return

            self._transition(run, stage.wait_state)
            outcome = self.barrier.wait(
                stage.barrier_key,
                poll_interval=stage.poll_interval_seconds,
                timeout=stage.wait_timeout_seconds,
            )
            if outcome is WaitOutcome.TIMED_OUT:
                raise BarrierTimeout(
                    stage.barrier_key, stage.wait_timeout_seconds, run_id=run.run_id, stage=stage.name
                )
            self.barrier.cleanup(stage.barrier_key)
            logger.info(f"✅ Run {run.run_id}: all '{stage.name}' jobs reached a terminal state")

    def _enqueue(self, run: OrchestrationRun, stage: StageDefinition, job_type: str) -> str:
        try:
            return self.broker.enqueue(job_type)
        except EnqueueFailure as e:
            e.run_id, e.stage = run.run_id, stage.name
            raise
        except Exception as e:
            raise EnqueueFailure(
                f"Failed to enqueue '{job_type}': {e}", job_type=job_type, run_id=run.run_id, stage=stage.name
            ) from e

    def _abort(self, run: OrchestrationRun, stage: Optional[StageDefinition], error: Exception) -> None:
        stage_name = stage.name if stage else None
        logger.error(f"❌ Run {run.run_id}: aborting in stage '{stage_name}': {error}")

        if stage is not None and stage.wait_for_completion:
            try:
                self.barrier.cleanup(stage.barrier_key)
            except StoreUnavailable as cleanup_error:
                logger.error(f"Run {run.run_id}: could not delete barrier '{stage.barrier_key}': {cleanup_error}")
        self.lock.release(self.lock_key)

        run.failed_stage = stage_name
        run.error_message = str(error)
        self._transition(run, OrchestrationState.FAILED)

    def _transition(self, run: OrchestrationRun, new_state: OrchestrationState) -> None:
        previous = run.state
        run.transition(new_state)
        logger.info(f"Run {run.run_id}: {previous.value} -> {new_state.value}")
