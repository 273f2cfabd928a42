import enum
import logging
import time
from typing import Callable, Optional

from core.coordination.redis_store import CoordinationStore

logger = logging.getLogger(__name__)


class WaitOutcome(str, enum.Enum):
    DONE = "done"
    TIMED_OUT = "timed_out"


class StageBarrier:
    """
    Countdown barrier stored as a single integer per stage.

    The orchestrator sets the counter to the number of jobs it is about to
    enqueue, each job decrements it once on terminal completion, and the
    orchestrator polls until it reaches zero or the stage times out. A missing
    key while waiting means the counter was already cleaned up, which only
    happens after it has been fully signalled, so it is read as done.
    """

    def __init__(
        self,
        store: CoordinationStore,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self._clock = clock
        self._sleep = sleep

    def init(self, key: str, count: int) -> None:
        if count < 0:
            raise ValueError(f"Barrier count must not be negative, got {count}")
        # Overwrites whatever an abandoned earlier stage left behind.
        self.store.set_value(key, count)
        logger.info(f"Barrier '{key}' initialised to {count}")

    def signal(self, key: str) -> Optional[int]:
        result = self.store.decrement_if_present(key)
        if result is None:
            logger.info(f"Barrier '{key}' is gone (stage finished or timed out), signal ignored")
            return None
        remaining, over_signalled = result
        if over_signalled:
            logger.warning(f"Barrier '{key}' was already at {remaining}; extra signal ignored")
        else:
            logger.info(f"📊 Barrier '{key}': {remaining} job(s) remaining")
        return remaining

    def remaining(self, key: str) -> Optional[int]:
        return self.store.get_int(key)

    def wait(self, key: str, poll_interval: float, timeout: float) -> WaitOutcome:
        started = self._clock()
        while True:
            remaining = self.remaining(key)
            if remaining is None or remaining <= 0:
                logger.info(f"✅ Barrier '{key}' released after {self._clock() - started:.1f}s")
                return WaitOutcome.DONE

            elapsed = self._clock() - started
            if elapsed > timeout:
                logger.error(f"❌ Timed out after {elapsed:.1f}s waiting on barrier '{key}' ({remaining} remaining)")
                return WaitOutcome.TIMED_OUT

            logger.debug(f"Barrier '{key}': {remaining} remaining, next check in {poll_interval}s")
            self._sleep(poll_interval)

    def cleanup(self, key: str) -> None:
        self.store.delete(key)
        logger.debug(f"Barrier '{key}' removed")
