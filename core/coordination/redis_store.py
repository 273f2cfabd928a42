# ============================================
# 📁 core/coordination/redis_store.py
# ============================================
import logging
from typing import Optional, Union

import redis # For Redis client and exceptions

from core.orchestrator.exceptions import StoreUnavailable
from core.orchestrator.trace_utils import start_span

logger = logging.getLogger(__name__)

# Decrements only when the key exists and is still positive. Returns false
# (None in redis-py) for a missing key, otherwise {value, over_signalled}.
GUARDED_DECREMENT_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
    return false
end
current = tonumber(current)
if current <= 0 then
    return {current, 1}
end
return {redis.call('DECR', KEYS[1]), 0}
"""


class CoordinationStore:
    """
    Thin wrapper over a redis-py client exposing only the atomic commands the
    lock and barrier need. Every redis error is re-raised as StoreUnavailable.
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = ""):
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self._guarded_decrement = self.redis_client.register_script(GUARDED_DECREMENT_SCRIPT)

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "") -> "CoordinationStore":
        client = redis.from_url(redis_url, decode_responses=True)
        logger.info(f"CoordinationStore using Redis at {redis_url} with prefix '{key_prefix}'")
        return cls(client, key_prefix=key_prefix)

    def _get_full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def ping(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable("ping", "", e) from e

    def set_if_absent(self, key: str, value: Union[str, int], expiry_seconds: int) -> bool:
        full_key = self._get_full_key(key)
        with start_span("coordination.set_if_absent", **{"db.system": "redis", "db.redis.key": full_key}) as span:
            try:
                created = self.redis_client.set(full_key, value, nx=True, ex=expiry_seconds)
            except redis.exceptions.RedisError as e:
                logger.error(f"Redis error on SET NX for key '{full_key}': {e}")
                raise StoreUnavailable("set_if_absent", full_key, e) from e
            span.set_attribute("db.redis.created", bool(created))
            logger.debug(f"SET NX '{full_key}' ex={expiry_seconds}s -> {bool(created)}")
            return bool(created)

    def set_value(self, key: str, value: Union[str, int], expiry_seconds: Optional[int] = None) -> None:
        full_key = self._get_full_key(key)
        with start_span("coordination.set_value", **{"db.system": "redis", "db.redis.key": full_key}):
            try:
                if expiry_seconds:
                    self.redis_client.set(full_key, value, ex=expiry_seconds)
                else:
                    self.redis_client.set(full_key, value)
            except redis.exceptions.RedisError as e:
                logger.error(f"Redis error setting value for key '{full_key}': {e}")
                raise StoreUnavailable("set_value", full_key, e) from e
            logger.debug(f"Set '{full_key}' = {value} with expiry {expiry_seconds or 'None'}")

    def get_int(self, key: str) -> Optional[int]:
        full_key = self._get_full_key(key)
        try:
            raw_value = self.redis_client.get(full_key)
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis error getting value for key '{full_key}': {e}")
            raise StoreUnavailable("get", full_key, e) from e
        if raw_value is None:
            return None
        try:
            return int(raw_value)
        except (TypeError, ValueError):
            logger.error(f"Value for key '{full_key}' is not an integer: {raw_value!r}")
            raise

    def decrement_if_present(self, key: str) -> Optional[tuple]:
        """
        Atomically decrements a positive counter.
        Returns None when the key is absent, else (new_value, over_signalled).
        """
        full_key = self._get_full_key(key)
        with start_span("coordination.decrement", **{"db.system": "redis", "db.redis.key": full_key}) as span:
            try:
                result = self._guarded_decrement(keys=[full_key])
            except redis.exceptions.RedisError as e:
                logger.error(f"Redis error decrementing key '{full_key}': {e}")
                raise StoreUnavailable("decrement", full_key, e) from e
            if result is None:
                span.set_attribute("db.redis.key_exists", False)
                return None
            value, over_signalled = int(result[0]), bool(int(result[1]))
            span.set_attribute("db.redis.value", value)
            return value, over_signalled

    def delete(self, key: str) -> bool:
        full_key = self._get_full_key(key)
        with start_span("coordination.delete", **{"db.system": "redis", "db.redis.key": full_key}):
            try:
                deleted_count = int(self.redis_client.delete(full_key))
            except redis.exceptions.RedisError as e:
                logger.error(f"Redis error deleting key '{full_key}': {e}")
                raise StoreUnavailable("delete", full_key, e) from e
            logger.debug(f"Deleted {deleted_count} key(s) for '{full_key}'")
            return deleted_count > 0
