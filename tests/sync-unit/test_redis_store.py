# ===================================================
# 📁 tests/sync-unit/test_redis_store.py
# ===================================================
import pytest
from unittest.mock import MagicMock

import redis

from core.coordination.redis_store import CoordinationStore
from core.orchestrator.exceptions import StoreUnavailable


@pytest.fixture
def broken_client():
    """A redis client whose every command fails as if the server were down."""
    client = MagicMock()
    error = redis.exceptions.ConnectionError("Connection refused")
    client.set.side_effect = error
    client.get.side_effect = error
    client.delete.side_effect = error
    client.ping.side_effect = error
    client.register_script.return_value = MagicMock(side_effect=error)
    return client


def test_key_prefix_is_applied(fake_redis):
    store = CoordinationStore(fake_redis, key_prefix="fieldsync:")

    store.set_value("core_tasks_remaining", 4)

    assert fake_redis.data == {"fieldsync:core_tasks_remaining": "4"}
    assert store.get_int("core_tasks_remaining") == 4


def test_set_if_absent_only_creates_once(store, fake_redis):
    assert store.set_if_absent("sync_running", "run-a", 600) is True
    assert store.set_if_absent("sync_running", "run-b", 600) is False
    assert fake_redis.data["sync_running"] == "run-a"
    assert fake_redis.ttls["sync_running"] == 600


def test_get_int_missing_key_returns_none(store):
    assert store.get_int("nothing_here") is None


def test_decrement_if_present_does_not_create_key(store, fake_redis):
    assert store.decrement_if_present("order_tasks_remaining") is None
    assert "order_tasks_remaining" not in fake_redis.data


def test_decrement_if_present_stops_at_zero(store):
    store.set_value("core_tasks_remaining", 1)

    assert store.decrement_if_present("core_tasks_remaining") == (0, False)
    assert store.decrement_if_present("core_tasks_remaining") == (0, True)
    assert store.get_int("core_tasks_remaining") == 0


def test_delete_reports_whether_key_existed(store):
    store.set_value("core_tasks_remaining", 2)
    assert store.delete("core_tasks_remaining") is True
    assert store.delete("core_tasks_remaining") is False


@pytest.mark.parametrize("call", [
    lambda s: s.set_if_absent("sync_running", "1", 600),
    lambda s: s.set_value("core_tasks_remaining", 4),
    lambda s: s.get_int("core_tasks_remaining"),
    lambda s: s.decrement_if_present("core_tasks_remaining"),
    lambda s: s.delete("core_tasks_remaining"),
    lambda s: s.ping(),
])
def test_redis_errors_become_store_unavailable(broken_client, call):
    store = CoordinationStore(broken_client)

    with pytest.raises(StoreUnavailable) as exc_info:
        call(store)

    assert isinstance(exc_info.value.cause, redis.exceptions.ConnectionError)


def test_from_url_builds_decoding_client():
    client = MagicMock()
    with pytest.MonkeyPatch.context() as mp:
        from_url = MagicMock(return_value=client)
        mp.setattr(redis, "from_url", from_url)
        store = CoordinationStore.from_url("redis://cache:6379/2", key_prefix="x:")

    from_url.assert_called_once_with("redis://cache:6379/2", decode_responses=True)
    assert store.redis_client is client
    assert store.key_prefix == "x:"
