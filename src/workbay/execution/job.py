"""
Job record: the authoritative state of one background command.
"""

import asyncio
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from .buffer import OUTPUT_CAP_BYTES, OUTPUT_KEEP_BYTES, OutputBuffer
from .models import JobState, JobStatus


class Job:
    """
    State for one execution.

    The record moves from RUNNING to COMPLETE exactly once, when finalize()
    sets ended_at. Buffer writes, finalization and snapshots all go through
    the record lock, so a snapshot never sees a half-applied append.
    """

    def __init__(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: float | None = None,
        cap_bytes: int = OUTPUT_CAP_BYTES,
        keep_bytes: int = OUTPUT_KEEP_BYTES,
        clock: Callable[[], float] = time.monotonic,
        job_id: str | None = None,
    ) -> None:
        """
        Initialize job record.

        Args:
            command: Shell command line
            cwd: Working directory
            timeout: Timeout in seconds, None for no timeout
            cap_bytes: Per-stream buffer cap
            keep_bytes: Bytes kept when a buffer exceeds the cap
            clock: Monotonic clock used for durations
            job_id: Job identifier (generated if None)
        """
        self.job_id = job_id or str(uuid4())
        self.command = command
        self.cwd = cwd
        self.timeout = timeout

        self.stdout = OutputBuffer(cap_bytes, keep_bytes)
        self.stderr = OutputBuffer(cap_bytes, keep_bytes)

        self._clock = clock
        self.created_at = datetime.now(UTC)
        self.started_at = clock()
        self.ended_at: float | None = None
        self.exit_code: int | None = None
        self.timed_out = False

        self._process: asyncio.subprocess.Process | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> JobState:
        return JobState.RUNNING if self.ended_at is None else JobState.COMPLETE

    @property
    def is_running(self) -> bool:
        return self.ended_at is None

    @property
    def pid(self) -> int | None:
        """PID of the live process, None once finalized."""
        with self._lock:
            return self._process.pid if self._process is not None else None

    def attach(self, process: asyncio.subprocess.Process) -> None:
        """Take ownership of the spawned process."""
        with self._lock:
            if self._process is not None or self.ended_at is not None:
                raise RuntimeError(f"Job {self.job_id} already has a process")
            self._process = process

    def append_stdout(self, chunk: bytes) -> None:
        with self._lock:
            self.stdout.append(chunk)

    def append_stderr(self, chunk: bytes) -> None:
        with self._lock:
            self.stderr.append(chunk)

    def report_error(self, message: str) -> None:
        """Record an internal error on the stderr buffer."""
        self.append_stderr(message.encode("utf-8", errors="replace"))

    def finalize(self, exit_code: int, timed_out: bool = False) -> bool:
        """
        Mark the job complete.

        Only the first call has any effect.

        Args:
            exit_code: Exit status to record
            timed_out: Whether the job was killed by its timeout

        Returns:
            True if this call finalized the job
        """
        with self._lock:
            if self.ended_at is not None:
                return False

            self.exit_code = exit_code
            self.timed_out = timed_out
            self.ended_at = self._clock()
            self._process = None
            return True

    def is_expired(self, now: float, retention: float) -> bool:
        """Whether a finished job has outlived the retention window."""
        ended_at = self.ended_at
        return ended_at is not None and now - ended_at > retention

    def snapshot(self) -> JobStatus:
        """
        Take a consistent snapshot of the job.

        Returns:
            JobStatus for the current state
        """
        with self._lock:
            end = self.ended_at if self.ended_at is not None else self._clock()

            return JobStatus(
                job_id=self.job_id,
                command=self.command,
                state=self.state,
                duration_ms=(end - self.started_at) * 1000,
                stdout=self.stdout.text(),
                stderr=self.stderr.text(),
                exit_code=self.exit_code,
                timed_out=self.timed_out,
                stdout_truncated=self.stdout.truncated,
                stderr_truncated=self.stderr.truncated,
            )

    def __repr__(self) -> str:
        return f"Job(job_id={self.job_id!r}, command={self.command!r}, state={self.state.value})"
