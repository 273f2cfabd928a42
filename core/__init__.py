import logging

# --- Coordination Store, Lock and Barrier ---
from .coordination.redis_store import CoordinationStore
from .coordination.lock import DistributedLock
from .coordination.barrier import StageBarrier, WaitOutcome

# --- Orchestrator ---
from .orchestrator.exceptions import (
    SyncCoordinationError,
    OrchestrationError,
    LockContention,
    EnqueueFailure,
    BarrierTimeout,
    StoreUnavailable,
    HandlerNotRegistered,
)
from .orchestrator.stages import StageDefinition, build_default_stages
from .orchestrator.state import OrchestrationRun, OrchestrationState
from .orchestrator.main_orchestrator import SyncOrchestrator, QueueBroker

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Define __all__ for explicit public API of the 'core' package
__all__ = [
    "CoordinationStore", "DistributedLock", "StageBarrier", "WaitOutcome",
    "SyncCoordinationError", "OrchestrationError", "LockContention", "EnqueueFailure",
    "BarrierTimeout", "StoreUnavailable", "HandlerNotRegistered",
    "StageDefinition", "build_default_stages",
    "OrchestrationRun", "OrchestrationState",
    "SyncOrchestrator", "QueueBroker",
]
