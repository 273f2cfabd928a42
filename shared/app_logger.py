# ============================
# 📁 shared/app_logger.py
# ============================
import logging
import os
import sys # For logging.StreamHandler(sys.stderr)
from typing import Dict, Optional # For type hints

_loggers: Dict[str, logging.Logger] = {} # Cache for logger instances

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [{service}] - %(name)s - %(message)s'


def get_app_logger(name: str, service_name_override: Optional[str] = None) -> logging.Logger:
    """
    Retrieves or creates a standardized logger instance.
    The logger name will be 'service_name.name' unless name already is the service name.
    OpenTelemetry LoggingInstrumentor (if active) will enrich logs with trace context.
    """
    effective_service_name = service_name_override or os.getenv("SERVICE_NAME", "fieldsync")

    logger_full_name = f"{effective_service_name}.{name}" if name != effective_service_name else effective_service_name

    if logger_full_name in _loggers:
        return _loggers[logger_full_name]

    logger_instance = logging.getLogger(logger_full_name)

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_log_level = getattr(logging, log_level_str, logging.INFO)
    logger_instance.setLevel(numeric_log_level)

    # Add our standard handler ONLY if no handlers are already configured for this logger
    if not logger_instance.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT.format(service=effective_service_name)))
        logger_instance.addHandler(handler)
        # Our own handler is attached, so don't also emit through the root logger
        logger_instance.propagate = False

    _loggers[logger_full_name] = logger_instance
    return logger_instance


def configure_root_logging(level: str = "INFO", service_name: Optional[str] = None) -> None:
    """
    Applies the service log format to the root logger so that module loggers
    created with logging.getLogger(__name__) share it. Celery workers call this
    from the setup_logging signal instead of letting Celery hijack the root logger.
    """
    effective_service_name = service_name or os.getenv("SERVICE_NAME", "fieldsync")
    numeric_log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_log_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT.format(service=effective_service_name)))
    root.addHandler(handler)
