class SyncCoordinationError(Exception):
    """Base class for every error raised by the sync coordination layer."""


class OrchestrationError(SyncCoordinationError):
    def __init__(self, message: str, run_id: str = "", stage: str = ""):
        super().__init__(message)
        self.run_id = run_id
        self.stage = stage

    def __str__(self):
        context = f" [Run: {self.run_id}, Stage: {self.stage}]" if self.run_id or self.stage else ""
        return f"{type(self).__name__}: {self.args[0]}{context}"


class LockContention(OrchestrationError):
    """The sync lock is held by another run. Expected; the trigger is skipped."""

    def __init__(self, lock_key: str, run_id: str = ""):
        super().__init__(f"Lock '{lock_key}' is already held", run_id=run_id)
        self.lock_key = lock_key


class EnqueueFailure(OrchestrationError):
    def __init__(self, message: str, job_type: str, run_id: str = "", stage: str = ""):
        super().__init__(message, run_id=run_id, stage=stage)
        self.job_type = job_type


class BarrierTimeout(OrchestrationError):
    def __init__(self, barrier_key: str, timeout: float, run_id: str = "", stage: str = ""):
        super().__init__(
            f"Barrier '{barrier_key}' did not reach zero within {timeout:.0f}s",
            run_id=run_id,
            stage=stage,
        )
        self.barrier_key = barrier_key
        self.timeout = timeout


class StoreUnavailable(SyncCoordinationError):
    """A coordination store command failed (connection refused, timeout, server error)."""

    def __init__(self, operation: str, key: str, cause: Exception):
        super().__init__(f"Coordination store {operation} on '{key}' failed: {cause}")
        self.operation = operation
        self.key = key
        self.cause = cause


class HandlerNotRegistered(SyncCoordinationError):
    def __init__(self, job_type: str):
        super().__init__(f"No sync handler registered for job type '{job_type}'")
        self.job_type = job_type
