"""
Exception hierarchy for Workbay.

Errors raised by start/run_sync are reported to the caller synchronously.
Anything that goes wrong after a job is running is recorded on the job instead.
"""


class WorkbayError(Exception):
    """Base class for all Workbay errors."""


class ExecutionError(WorkbayError):
    """Base class for command execution errors."""


class ResourceExhaustedError(ExecutionError):
    """Raised when the concurrency limit is reached. Nothing was started."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Max concurrent jobs reached ({limit})")


class SpawnFailureError(ExecutionError):
    """Raised when the process could not be started."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start command {command!r}: {reason}")


class JobNotFoundError(ExecutionError, KeyError):
    """Raised for unknown or already reaped job ids."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")

    def __str__(self) -> str:
        return self.args[0]
