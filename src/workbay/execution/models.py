"""
Value types exchanged with callers of the execution core.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_TIMEOUT_SECONDS = 120.0

# Exit codes reported when the real exit status is not available
TIMEOUT_EXIT_CODE = 124
FAILURE_EXIT_CODE = 1


class TimeoutDefault(Enum):
    """Marks an ExecOptions timeout left for the runner to fill in."""

    DEFAULT = "default"


DEFAULT_TIMEOUT = TimeoutDefault.DEFAULT


class JobState(Enum):
    """Job lifecycle state."""

    RUNNING = "running"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ExecOptions:
    """
    Options for starting a command.

    timeout is a single optional duration in seconds; None means the command
    may run indefinitely. Left at DEFAULT_TIMEOUT, the configured default
    applies.
    """

    cwd: Path | None = None
    timeout: float | None | TimeoutDefault = DEFAULT_TIMEOUT

    def resolve(self, default_timeout: float, cwd: Path | None = None) -> "ExecOptions":
        """
        Fill in the default timeout and working directory.

        Args:
            default_timeout: Timeout in seconds used when none was given
            cwd: Working directory used when none was given

        Returns:
            ExecOptions with a concrete timeout
        """
        timeout = default_timeout if self.timeout is DEFAULT_TIMEOUT else self.timeout
        return ExecOptions(cwd=self.cwd or cwd, timeout=timeout)

    @classmethod
    def from_request(
        cls,
        cwd: Path | None = None,
        timeout_ms: float | None = None,
        unbounded: bool = False,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "ExecOptions":
        """
        Build options from the wire representation.

        Args:
            cwd: Working directory
            timeout_ms: Timeout in milliseconds (default_timeout when omitted)
            unbounded: Disable the timeout entirely; wins over timeout_ms
            default_timeout: Timeout in seconds used when timeout_ms is omitted

        Returns:
            ExecOptions instance
        """
        if unbounded:
            timeout = None
        elif timeout_ms is not None:
            timeout = timeout_ms / 1000
        else:
            timeout = default_timeout

        return cls(cwd=cwd, timeout=timeout)


@dataclass(frozen=True)
class JobStatus:
    """Point-in-time snapshot of a job."""

    job_id: str
    command: str
    state: JobState
    duration_ms: float
    stdout: str
    stderr: str
    exit_code: int | None = None
    timed_out: bool = False
    stdout_truncated: bool = False
    stderr_truncated: bool = False

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING

    def to_dict(self) -> dict[str, Any]:
        """
        Convert status to dictionary.

        Returns:
            Dict representation
        """
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class RunResult:
    """Result of a synchronous command run."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: float
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StopResult:
    """Outcome of a stop request. success=False is a normal answer, not an error."""

    success: bool
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
