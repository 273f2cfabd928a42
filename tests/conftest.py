# ===================================================
# 📁 tests/conftest.py
# ===================================================
import threading
from typing import Callable, Dict, List, Optional

import pytest

from core.coordination.barrier import StageBarrier
from core.coordination.lock import DistributedLock
from core.coordination.redis_store import CoordinationStore
from core.orchestrator.exceptions import EnqueueFailure


class InMemoryRedis:
    """
    Just enough of redis.Redis (decode_responses=True) for the coordination
    store: SET with NX/EX, GET, DELETE, PING and the guarded-decrement script.
    Every command holds one lock, matching Redis' single-threaded execution.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self._mutex = threading.Lock()

    def ping(self):
        return True

    def set(self, key, value, nx=False, ex=None):
        with self._mutex:
            if nx and key in self.data:
                return None
            self.data[key] = str(value)
            if ex:
                self.ttls[key] = ex
            else:
                self.ttls.pop(key, None)
            return True

    def get(self, key):
        with self._mutex:
            return self.data.get(key)

    def delete(self, *keys):
        with self._mutex:
            deleted = 0
            for key in keys:
                if key in self.data:
                    del self.data[key]
                    self.ttls.pop(key, None)
                    deleted += 1
            return deleted

    def register_script(self, script):
        def guarded_decrement(keys=None, args=None, client=None):
            key = keys[0]
            with self._mutex:
                current = self.data.get(key)
                if current is None:
                    return None
                current = int(current)
                if current <= 0:
                    return [current, 1]
                self.data[key] = str(current - 1)
                return [current - 1, 0]
        return guarded_decrement

    def expire_now(self, key):
        """Simulates the key's TTL running out."""
        with self._mutex:
            self.data.pop(key, None)
            self.ttls.pop(key, None)


class FakeClock:
    """Monotonic clock whose sleep advances time and runs an optional hook."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []
        self.on_sleep: Optional[Callable[[int], None]] = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))


class FakeBroker:
    def __init__(self, fail_on: Optional[str] = None, on_enqueue: Optional[Callable[[str], None]] = None):
        self.fail_on = fail_on
        self.on_enqueue = on_enqueue
        self.enqueued: List[str] = []

    def enqueue(self, job_type: str) -> str:
        if job_type == self.fail_on:
            raise EnqueueFailure(f"broker refused '{job_type}'", job_type=job_type)
        self.enqueued.append(job_type)
        if self.on_enqueue is not None:
            self.on_enqueue(job_type)
        return f"task-{len(self.enqueued)}"


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def store(fake_redis):
    return CoordinationStore(fake_redis)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lock(store):
    return DistributedLock(store)


@pytest.fixture
def barrier(store, clock):
    return StageBarrier(store, clock=clock, sleep=clock.sleep)


@pytest.fixture
def make_broker():
    return FakeBroker
