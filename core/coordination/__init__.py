from .redis_store import CoordinationStore
from .lock import DistributedLock
from .barrier import StageBarrier, WaitOutcome

__all__ = ["CoordinationStore", "DistributedLock", "StageBarrier", "WaitOutcome"]
