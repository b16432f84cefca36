"""
Background command-execution core.
"""

from .buffer import OUTPUT_CAP_BYTES, OUTPUT_KEEP_BYTES, OutputBuffer
from .gate import ConcurrencyGate
from .job import Job
from .manager import JobManager
from .models import (
    DEFAULT_TIMEOUT,
    DEFAULT_TIMEOUT_SECONDS,
    FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    ExecOptions,
    JobState,
    JobStatus,
    RunResult,
    StopResult,
)
from .registry import JobRegistry
from .runner import run_sync

__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_TIMEOUT_SECONDS",
    "FAILURE_EXIT_CODE",
    "OUTPUT_CAP_BYTES",
    "OUTPUT_KEEP_BYTES",
    "TIMEOUT_EXIT_CODE",
    "ConcurrencyGate",
    "ExecOptions",
    "Job",
    "JobManager",
    "JobRegistry",
    "JobState",
    "JobStatus",
    "OutputBuffer",
    "RunResult",
    "StopResult",
    "run_sync",
]
