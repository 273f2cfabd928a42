# ===================================================
# 📁 tests/sync-unit/test_sync_tasks.py
# ===================================================
from types import SimpleNamespace

import pytest
from unittest.mock import MagicMock, patch

import fieldsync_celery
from core.orchestrator.exceptions import HandlerNotRegistered
from core.orchestrator.stages import (
    CORE_JOB_TYPES,
    ORCHESTRATE_FULL_SYNC,
    ORDER_JOB_TYPES,
    SYNC_PRODUCTS,
    build_default_stages,
    barrier_key_for_job,
)
from tasks import sync_tasks
from tasks.handlers import sync_handlers
from tasks.runtime import SyncRuntime

CORE_KEY = "core_tasks_remaining"


@pytest.fixture
def runtime(store, lock, barrier, make_broker):
    config = SimpleNamespace(
        lock_key="sync_running",
        lock_ttl_seconds=600,
        core_barrier_key=CORE_KEY,
        order_barrier_key="order_tasks_remaining",
        core_timeout_seconds=30.0,
        order_timeout_seconds=40.0,
        poll_interval_seconds=2.0,
        wait_for_stage2=True,
    )
    stages = build_default_stages(config)
    # every enqueued job "runs" immediately and signals its barrier
    broker = make_broker(on_enqueue=lambda job: barrier.signal(barrier_key_for_job(stages, job)))
    rt = SyncRuntime(config=config, store=store, lock=lock, barrier=barrier, broker=broker, stages=stages)

    bound_tasks = [sync_tasks.orchestrate_full_sync, sync_tasks.sync_products, sync_tasks.sync_orders]
    for task in bound_tasks:
        task._runtime = rt
    yield rt
    for task in bound_tasks:
        task._runtime = None


@pytest.fixture
def products_handler():
    calls = []

    @sync_handlers.register(SYNC_PRODUCTS)
    def sync_products_into_index():
        calls.append(SYNC_PRODUCTS)
        return {"synced": 120}

    yield calls
    sync_handlers.unregister(SYNC_PRODUCTS)


def test_all_job_types_are_registered_as_tasks():
    registered = fieldsync_celery.celery_app.tasks

    for job_type in CORE_JOB_TYPES + ORDER_JOB_TYPES + (ORCHESTRATE_FULL_SYNC,):
        assert job_type in registered
        assert registered[job_type].max_retries == 3


def test_beat_schedule_triggers_orchestration_every_minute():
    entry = fieldsync_celery.celery_app.conf.beat_schedule["orchestrate-full-sync"]

    assert entry["task"] == ORCHESTRATE_FULL_SYNC
    assert entry["schedule"] == fieldsync_celery.crontab_from_expression("* * * * *")


def test_crontab_from_expression_rejects_bad_input():
    schedule = fieldsync_celery.crontab_from_expression("*/5 2 * * 1")
    assert schedule.minute == {0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}
    assert schedule.hour == {2}

    with pytest.raises(ValueError):
        fieldsync_celery.crontab_from_expression("every minute")


def test_stage_task_runs_handler_and_signals(runtime, barrier, products_handler):
    barrier.init(CORE_KEY, 4)

    assert sync_tasks.sync_products() == {"synced": 120}

    assert products_handler == [SYNC_PRODUCTS]
    assert barrier.remaining(CORE_KEY) == 3


def test_unregistered_handler_outside_worker_fails_and_signals(runtime, barrier):
    # Called directly, Celery's retry re-raises instead of scheduling, so the attempt is terminal.
    barrier.init(CORE_KEY, 4)

    with pytest.raises(HandlerNotRegistered):
        sync_tasks.sync_products()

    assert barrier.remaining(CORE_KEY) == 3


def test_orchestrate_task_returns_run_record(runtime, fake_redis):
    result = sync_tasks.orchestrate_full_sync()

    assert result["state"] == "Completed"
    assert result["history"][-1] == "Completed"
    assert list(result["enqueued"]) == ["core", "order"]
    assert runtime.broker.enqueued == list(CORE_JOB_TYPES) + list(ORDER_JOB_TYPES)
    assert fake_redis.data == {}


def test_orchestrate_task_skips_when_locked(runtime, lock):
    lock.acquire("sync_running", 600, sentinel="other-run")

    result = sync_tasks.orchestrate_full_sync()

    assert result["state"] == "SkippedLocked"
    assert runtime.broker.enqueued == []


def test_runtime_is_built_once_per_task_instance():
    task = sync_tasks.sync_orders
    task._runtime = None
    try:
        with patch("tasks.sync_tasks.build_runtime") as mock_build:
            first = task.runtime
            second = task.runtime

        mock_build.assert_called_once_with(fieldsync_celery.celery_app.sync_config, fieldsync_celery.celery_app)
        assert first is second
    finally:
        task._runtime = None


def test_worker_start_enqueues_orchestration():
    sender = MagicMock()
    sender.app.send_task.return_value = MagicMock(id="startup-1")

    with patch.object(fieldsync_celery.app_config, "enqueue_on_startup", True):
        fieldsync_celery.enqueue_startup_sync(sender=sender)

    sender.app.send_task.assert_called_once_with(ORCHESTRATE_FULL_SYNC, retry=False)


def test_worker_start_enqueue_can_be_disabled():
    sender = MagicMock()

    with patch.object(fieldsync_celery.app_config, "enqueue_on_startup", False):
        fieldsync_celery.enqueue_startup_sync(sender=sender)

    sender.app.send_task.assert_not_called()


def test_worker_process_sets_up_tracing_when_endpoint_configured():
    with patch.object(fieldsync_celery.app_config, "otel_exporter_otlp_traces_endpoint", "otel-collector:4317"), \
            patch("core.observability.tracing.setup_tracing") as mock_setup:
        fieldsync_celery.init_worker_tracing()

    mock_setup.assert_called_once_with(
        fieldsync_celery.app_config.service_name,
        "otel-collector:4317",
        fieldsync_celery.app_config.environment,
    )


def test_worker_process_skips_tracing_without_endpoint():
    with patch.object(fieldsync_celery.app_config, "otel_exporter_otlp_traces_endpoint", None), \
            patch("core.observability.tracing.setup_tracing") as mock_setup:
        fieldsync_celery.init_worker_tracing()

    mock_setup.assert_not_called()
