"""
Workbay: workspace-automation sidecar with a background command-execution core.
"""

from .errors import (
    ExecutionError,
    JobNotFoundError,
    ResourceExhaustedError,
    SpawnFailureError,
    WorkbayError,
)
from .execution import ExecOptions, JobManager, JobState, JobStatus, RunResult, run_sync

__version__ = "0.1.0"

__all__ = [
    "ExecOptions",
    "ExecutionError",
    "JobManager",
    "JobNotFoundError",
    "JobState",
    "JobStatus",
    "ResourceExhaustedError",
    "RunResult",
    "SpawnFailureError",
    "WorkbayError",
    "run_sync",
]
