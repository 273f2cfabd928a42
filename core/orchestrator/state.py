"""
state.py

Defines the orchestration run state: the state machine's states and the
record an orchestrator keeps for the run it owns.
"""
import datetime
import enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class OrchestrationState(str, enum.Enum):
    IDLE = "Idle"
    ACQUIRING_LOCK = "AcquiringLock"
    STAGE1_ENQUEUE = "Stage1Enqueue"
    STAGE1_WAIT = "Stage1Wait"
    STAGE2_ENQUEUE = "Stage2Enqueue"
    STAGE2_WAIT = "Stage2Wait"
    COMPLETED = "Completed"
    SKIPPED_LOCKED = "SkippedLocked"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    OrchestrationState.COMPLETED,
    OrchestrationState.SKIPPED_LOCKED,
    OrchestrationState.FAILED,
})


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class OrchestrationRun(BaseModel):
    run_id: str
    lock_key: str
    lock_ttl_seconds: int

    state: OrchestrationState = OrchestrationState.IDLE
    history: List[OrchestrationState] = Field(default_factory=lambda: [OrchestrationState.IDLE])
    started_at: str = Field(default_factory=utc_now_iso)  # ISO 8601 UTC timestamp
    acquired_at: Optional[str] = None
    finished_at: Optional[str] = None

    # stage name -> {job type -> broker handle}
    enqueued: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    failed_stage: Optional[str] = None
    error_message: Optional[str] = None

    def transition(self, new_state: OrchestrationState) -> None:
        if self.state.is_terminal:
            raise ValueError(f"Run {self.run_id} already finished in state {self.state.value}")
        self.state = new_state
        self.history.append(new_state)
        if new_state.is_terminal:
            self.finished_at = utc_now_iso()

    def enqueued_count(self, stage_name: Optional[str] = None) -> int:
        if stage_name is not None:
            return len(self.enqueued.get(stage_name, {}))
        return sum(len(handles) for handles in self.enqueued.values())
