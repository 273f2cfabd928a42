import logging

from core.coordination.redis_store import CoordinationStore
from core.orchestrator.exceptions import LockContention, StoreUnavailable

logger = logging.getLogger(__name__)


class DistributedLock:
    """
    Non-blocking, TTL-bounded mutual exclusion over the coordination store.
    Ownership is not checked on release: the only holder that ever releases is
    the orchestrator that acquired it, and the TTL reclaims the key after a crash.
    """

    def __init__(self, store: CoordinationStore):
        self.store = store

    def acquire(self, key: str, ttl_seconds: int, sentinel: str = "1") -> bool:
        # StoreUnavailable propagates: without the store no run may start.
        acquired = self.store.set_if_absent(key, sentinel, ttl_seconds)
        if acquired:
            logger.info(f"Acquired lock '{key}' (ttl={ttl_seconds}s, holder={sentinel})")
        else:
            logger.info(f"Lock '{key}' already held, not acquired")
        return acquired

    def acquire_or_raise(self, key: str, ttl_seconds: int, sentinel: str = "1") -> None:
        if not self.acquire(key, ttl_seconds, sentinel=sentinel):
            raise LockContention(key, run_id=sentinel)

    def release(self, key: str) -> None:
        try:
            self.store.delete(key)
            logger.info(f"Released lock '{key}'")
        except StoreUnavailable as e:
            logger.error(f"Failed to release lock '{key}', it will expire on its TTL: {e}", exc_info=True)
