# ========================================
# 📁 tasks/handlers.py
# ========================================
import logging
from typing import Callable, Dict, List, Any
from threading import RLock # To make registration thread-safe

from core.orchestrator.exceptions import HandlerNotRegistered

logger = logging.getLogger(__name__)

SyncHandler = Callable[[], Any]


class SyncHandlerRegistry:
    def __init__(self):
        """
        Maps job-type tags to the ETL callables that do the actual sync work.
        Handlers take no arguments: jobs carry no payload.
        """
        self._registry: Dict[str, SyncHandler] = {}
        self._lock = RLock()

    def register(self, job_type: str) -> Callable[[SyncHandler], SyncHandler]:
        def decorator(func: SyncHandler) -> SyncHandler:
            with self._lock:
                previous = self._registry.get(job_type)
                if previous is not None and previous is not func:
                    logger.warning(f"Replacing sync handler for '{job_type}': {previous.__qualname__} -> {func.__qualname__}")
                self._registry[job_type] = func
            logger.debug(f"Registered sync handler {func.__qualname__} for '{job_type}'")
            return func
        return decorator

    def resolve(self, job_type: str) -> SyncHandler:
        with self._lock:
            handler = self._registry.get(job_type)
        if handler is None:
            raise HandlerNotRegistered(job_type)
        return handler

    def unregister(self, job_type: str) -> bool:
        with self._lock:
            return self._registry.pop(job_type, None) is not None

    def registered_job_types(self) -> List[str]:
        with self._lock:
            return sorted(self._registry)


# ETL modules listed in SYNC_HANDLER_MODULES decorate their entry points with
# @register_sync_handler("sync:products") etc. and are imported by the worker.
sync_handlers = SyncHandlerRegistry()
register_sync_handler = sync_handlers.register
resolve_sync_handler = sync_handlers.resolve
