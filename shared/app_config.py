# ============================
# 📁 shared/app_config.py
# ============================
import os
import logging
from typing import Optional, Any, List # For type hints

logger = logging.getLogger(__name__)

class AppConfig:
    def __init__(self):
        # Core Infrastructure URLs
        self.redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.celery_broker_url: str = os.getenv("CELERY_BROKER_URL") or self.redis_url
        self.celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND") or self.redis_url

        self.otel_exporter_otlp_traces_endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")

        # General Application Settings
        self.service_name: str = os.getenv("SERVICE_NAME", "fieldsync")
        self.environment: str = os.getenv("APP_ENV", "development").lower()
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Coordination keys
        self.key_prefix: str = os.getenv("SYNC_KEY_PREFIX", "")
        self.lock_key: str = os.getenv("SYNC_LOCK_KEY", "sync_running")
        self.core_barrier_key: str = os.getenv("SYNC_CORE_BARRIER_KEY", "core_tasks_remaining")
        self.order_barrier_key: str = os.getenv("SYNC_ORDER_BARRIER_KEY", "order_tasks_remaining")

        # Orchestration tuning (seconds)
        self.lock_ttl_seconds: int = self._get_int_env("SYNC_LOCK_TTL_SECONDS", 10 * 60)
        self.core_timeout_seconds: float = self._get_float_env("SYNC_CORE_TIMEOUT_SECONDS", 15 * 60)
        self.order_timeout_seconds: float = self._get_float_env("SYNC_ORDER_TIMEOUT_SECONDS", 20 * 60)
        self.poll_interval_seconds: float = self._get_float_env("SYNC_POLL_INTERVAL_SECONDS", 2.0)
        self.wait_for_stage2: bool = self._get_bool_env("SYNC_WAIT_FOR_STAGE2", True)

        # Job delivery
        self.job_max_retries: int = self._get_int_env("SYNC_JOB_MAX_RETRIES", 3)
        self.job_retry_delay_seconds: int = self._get_int_env("SYNC_JOB_RETRY_DELAY_SECONDS", 10)
        self.schedule_cron: str = os.getenv("SYNC_SCHEDULE_CRON", "* * * * *")
        self.enqueue_on_startup: bool = self._get_bool_env("SYNC_ENQUEUE_ON_STARTUP", True)
        self.handler_modules: List[str] = self._get_list_env("SYNC_HANDLER_MODULES")

        self._validate_critical_configs()

    def _get_bool_env(self, var_name: str, default: bool) -> bool:
        val = os.getenv(var_name)
        if val is None:
            return default
        # Manual boolean conversion instead of distutils.strtobool
        return val.lower() in ['true', '1', 't', 'y', 'yes']

    def _get_int_env(self, var_name: str, default: int) -> int:
        val = os.getenv(var_name)
        if val is None or val.strip() == "":
            return default
        try:
            return int(val)
        except ValueError:
            raise ValueError(f"{var_name} must be an integer, got {val!r}")

    def _get_float_env(self, var_name: str, default: float) -> float:
        val = os.getenv(var_name)
        if val is None or val.strip() == "":
            return float(default)
        try:
            return float(val)
        except ValueError:
            raise ValueError(f"{var_name} must be a number, got {val!r}")

    def _get_list_env(self, var_name: str) -> List[str]:
        val = os.getenv(var_name, "")
        return [item.strip() for item in val.split(",") if item.strip()]

    def _validate_critical_configs(self):
        if not self.redis_url:
            logger.warning("REDIS_URL is not set in environment. Lock and barrier coordination will not function.")

        for name in ("lock_ttl_seconds", "core_timeout_seconds", "order_timeout_seconds", "poll_interval_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.job_max_retries < 0:
            raise ValueError(f"job_max_retries must not be negative, got {self.job_max_retries}")

        worst_case_wait = self.worst_case_wait_seconds()
        if self.lock_ttl_seconds <= worst_case_wait:
            logger.warning(
                f"SYNC_LOCK_TTL_SECONDS ({self.lock_ttl_seconds}s) does not exceed the worst-case stage wait "
                f"({worst_case_wait:.0f}s). The sync lock may expire while a run is still waiting on a stage."
            )

    def worst_case_wait_seconds(self) -> float:
        total = self.core_timeout_seconds
        if self.wait_for_stage2:
            total += self.order_timeout_seconds
        return total

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """Generic getter for other config values if you add them dynamically to the instance."""
        return getattr(self, key, default)
