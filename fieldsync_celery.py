# File: fieldsync_celery.py

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging, worker_process_init, worker_ready

from core.orchestrator.stages import ORCHESTRATE_FULL_SYNC
from shared.app_config import AppConfig
from shared.app_logger import configure_root_logging, get_app_logger

logger = get_app_logger("celery")


def crontab_from_expression(expression: str) -> crontab:
    """Turns a five-field cron expression into a celery crontab."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Expected a five-field cron expression, got {expression!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


def create_celery_app(config: AppConfig) -> Celery:
    app = Celery(
        "fieldsync",
        broker=config.celery_broker_url,
        backend=config.celery_result_backend,
        include=["tasks.sync_tasks"],
    )
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        result_expires=3600, # Results expire after 1 hour
        broker_connection_retry_on_startup=True, # Attempt reconnection on startup
        task_acks_late=True, # Task is acknowledged after it's done, not before
        worker_prefetch_multiplier=1, # Don't prefetch too many tasks
        task_reject_on_worker_lost=True, # Requeue tasks if worker dies
        imports=tuple(config.handler_modules), # ETL handler modules register themselves on import
        beat_schedule={
            "orchestrate-full-sync": {
                "task": ORCHESTRATE_FULL_SYNC,
                "schedule": crontab_from_expression(config.schedule_cron),
            },
        },
    )
    # Read by the task base class when it builds its coordination handles.
    app.sync_config = config
    return app


app_config = AppConfig()
celery_app = create_celery_app(app_config)


@setup_logging.connect
def configure_worker_logging(**kwargs):
    configure_root_logging(app_config.log_level, app_config.service_name)


@worker_process_init.connect
def init_worker_tracing(**kwargs):
    if app_config.otel_exporter_otlp_traces_endpoint:
        from core.observability.tracing import setup_tracing
        setup_tracing(app_config.service_name, app_config.otel_exporter_otlp_traces_endpoint, app_config.environment)


@worker_ready.connect
def enqueue_startup_sync(sender=None, **kwargs):
    """Submits one orchestration at worker start; it goes through the same lock as the beat trigger."""
    if not app_config.enqueue_on_startup:
        return
    from tasks.broker import CeleryQueueBroker
    from core.orchestrator.exceptions import EnqueueFailure

    app = sender.app if sender is not None else celery_app
    try:
        handle = CeleryQueueBroker(app).enqueue(ORCHESTRATE_FULL_SYNC)
        logger.info(f"Enqueued start-up {ORCHESTRATE_FULL_SYNC} as {handle}")
    except EnqueueFailure as e:
        logger.error(f"Start-up {ORCHESTRATE_FULL_SYNC} was not enqueued, waiting for the schedule: {e}")


# This block is typically for running the worker directly from this file for local dev.
if __name__ == '__main__':
    celery_app.start()
