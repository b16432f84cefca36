"""
Background job manager.

Launches commands as tracked jobs, enforces the concurrency limit, applies
timeouts, answers status/stop requests, and reaps old finished jobs.
"""

import asyncio
import contextlib
import signal
import time
from collections.abc import Callable
from pathlib import Path

from ..config.schema import ExecutionConfig
from ..errors import ResourceExhaustedError
from ..logging_config import get_logger
from .capture import capture_stream
from .gate import ConcurrencyGate
from .job import Job
from .models import (
    FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    ExecOptions,
    JobStatus,
    RunResult,
    StopResult,
)
from .process import normalize_returncode, signal_process_tree, spawn_shell, wait_for_exit
from .registry import JobRegistry
from .runner import run_sync

logger = get_logger(__name__)


class JobManager:
    """
    Owns the job registry, the concurrency gate and the reaper.

    Every job has one watcher task that waits for the process, enforces the
    timeout and finalizes the record. Finalization releases the gate exactly
    once no matter which path got there first.

    Use as an async context manager to run the reaper and terminate live
    jobs on exit:

        async with JobManager(config) as manager:
            job_id = await manager.start("make test")
    """

    def __init__(
        self,
        config: ExecutionConfig | None = None,
        workspace_root: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize job manager.

        Args:
            config: Execution limits (defaults if None)
            workspace_root: Default working directory (inherited if None)
            clock: Monotonic clock for durations and retention
        """
        self.config = config or ExecutionConfig()
        self.workspace_root = workspace_root
        self.registry = JobRegistry()
        self.gate = ConcurrencyGate(self.config.max_concurrent)

        self._clock = clock
        self._watchers: dict[str, asyncio.Task] = {}
        self._reaper_task: asyncio.Task | None = None

        logger.debug(f"JobManager: max_concurrent={self.config.max_concurrent}, workspace={workspace_root}")

    async def __aenter__(self) -> "JobManager":
        self.start_reaper()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.shutdown()

    @property
    def running(self) -> int:
        """Number of jobs currently holding a gate slot."""
        return self.gate.running

    def default_options(self) -> ExecOptions:
        return ExecOptions(cwd=self.workspace_root, timeout=self.config.default_timeout_seconds)

    async def start(self, command: str, options: ExecOptions | None = None) -> str:
        """
        Start a command as a background job.

        Args:
            command: Shell command line
            options: Working directory and timeout (manager defaults if None)

        Returns:
            Job ID

        Raises:
            ResourceExhaustedError: If max_concurrent jobs are already running
            SpawnFailureError: If the process could not be started
        """
        options = (options or ExecOptions()).resolve(self.config.default_timeout_seconds, self.workspace_root)
        cwd = options.cwd

        if not self.gate.try_acquire():
            logger.warning(f"Rejected {command!r}: {self.gate.capacity} jobs already running")
            raise ResourceExhaustedError(self.gate.capacity)

        job = Job(
            command,
            cwd=cwd,
            timeout=options.timeout,
            cap_bytes=self.config.output_cap_bytes,
            keep_bytes=self.config.output_keep_bytes,
            clock=self._clock,
        )

        try:
            process = await spawn_shell(self.config.shell, command, cwd)
        except BaseException:
            self.gate.release()
            raise

        job.attach(process)
        self.registry.add(job)

        readers = [
            asyncio.create_task(capture_stream(process.stdout, job.append_stdout, job.report_error)),
            asyncio.create_task(capture_stream(process.stderr, job.append_stderr, job.report_error)),
        ]
        self._watchers[job.job_id] = asyncio.create_task(
            self._watch(job, process, readers),
            name=f"workbay-job-{job.job_id}",
        )

        logger.info(f"Started job {job.job_id} (pid {process.pid}): {command!r}")

        return job.job_id

    def get_status(self, job_id: str) -> JobStatus:
        """
        Get job status.

        Never blocks on the process and never changes job state.

        Args:
            job_id: Job identifier

        Returns:
            Snapshot of the job

        Raises:
            JobNotFoundError: If the id is unknown or was reaped
        """
        return self.registry.get(job_id).snapshot()

    def list_jobs(self) -> list[JobStatus]:
        """
        List all known jobs.

        Returns:
            Snapshots, oldest first
        """
        jobs = sorted(self.registry.jobs(), key=lambda j: j.started_at)
        return [job.snapshot() for job in jobs]

    def stop(self, job_id: str) -> StopResult:
        """
        Ask a running job to terminate.

        Sends SIGTERM to the job's process tree and returns without waiting.
        The job finalizes when the process exits or its timeout fires.

        Args:
            job_id: Job identifier

        Returns:
            StopResult; success=False for unknown or finished jobs
        """
        job = self.registry.find(job_id)
        pid = job.pid if job is not None else None

        if pid is None:
            return StopResult(success=False, message="Job not found or already finished")

        if not signal_process_tree(pid, signal.SIGTERM):
            if job.is_running:
                # Process is gone; the watcher is draining its output
                return StopResult(success=True, message="Job is already exiting")
            return StopResult(success=False, message="Job already finished")

        logger.info(f"Stop requested for job {job_id}")

        return StopResult(success=True)

    async def run_sync(self, command: str, options: ExecOptions | None = None) -> RunResult:
        """
        Run a short command inline, outside the job registry and gate.

        Args:
            command: Shell command line
            options: Working directory and timeout (manager defaults if None)

        Returns:
            RunResult
        """
        options = (options or ExecOptions()).resolve(self.config.default_timeout_seconds, self.workspace_root)

        return await run_sync(
            command,
            options,
            shell=self.config.shell,
            drain_timeout=self.config.drain_timeout_seconds,
        )

    def reap(self, now: float | None = None) -> list[str]:
        """
        Remove finished jobs older than the retention window.

        Running jobs are never removed.

        Args:
            now: Current clock reading (defaults to the manager clock)

        Returns:
            IDs of removed jobs
        """
        now = self._clock() if now is None else now
        retention = self.config.retention_seconds

        reaped = []
        for job in self.registry.jobs():
            if job.is_expired(now, retention) and self.registry.remove(job.job_id):
                reaped.append(job.job_id)

        if reaped:
            logger.info(f"Reaped {len(reaped)} finished jobs")

        return reaped

    def start_reaper(self) -> None:
        """Start the periodic reaper task (no-op if already running)."""
        if self._reaper_task is None or self._reaper_task.done():
            self._reaper_task = asyncio.create_task(self._reap_loop(), name="workbay-reaper")

    async def shutdown(self) -> None:
        """Stop the reaper and terminate every running job."""
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

        watchers = list(self._watchers.values())
        if not watchers:
            return

        logger.info(f"Terminating {len(watchers)} running jobs")

        for job in self.registry.jobs():
            pid = job.pid
            if pid is not None:
                signal_process_tree(pid, signal.SIGTERM)

        _, pending = await asyncio.wait(watchers, timeout=self.config.kill_grace_seconds + 1)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.reap_interval_seconds)
            try:
                self.reap()
            except Exception:
                logger.exception("Reaper sweep failed")

    async def _watch(self, job: Job, process: asyncio.subprocess.Process, readers: list[asyncio.Task]) -> None:
        """Wait for the process (or its timeout) and finalize the job."""
        exit_code = FAILURE_EXIT_CODE
        timed_out = False

        try:
            try:
                returncode = await asyncio.wait_for(wait_for_exit(process), timeout=job.timeout)
                exit_code = normalize_returncode(returncode)
            except asyncio.TimeoutError:
                if process.returncode is not None:
                    exit_code = normalize_returncode(process.returncode)
                else:
                    logger.warning(f"Job {job.job_id} timed out after {job.timeout}s")
                    timed_out = True
                    exit_code = TIMEOUT_EXIT_CODE
                    await self._terminate(process)

            # Readers still open after this (a background descendant holding
            # the pipe) are cancelled below
            await asyncio.wait(readers, timeout=self.config.drain_timeout_seconds)

        except Exception as e:
            logger.exception(f"Failed to observe exit of job {job.job_id}")
            job.report_error(f"{type(e).__name__}: {e}\n")
            exit_code = FAILURE_EXIT_CODE

        finally:
            for reader in readers:
                if not reader.done():
                    reader.cancel()

            if process.returncode is None:
                # Exit was never observed; don't leave the process behind
                signal_process_tree(process.pid, signal.SIGKILL)

            self._finalize(job, exit_code, timed_out)
            self._watchers.pop(job.job_id, None)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM the process tree, escalating to SIGKILL after the grace period."""
        signal_process_tree(process.pid, signal.SIGTERM)

        try:
            await asyncio.wait_for(wait_for_exit(process), timeout=self.config.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Process {process.pid} ignored SIGTERM, sending SIGKILL")
            signal_process_tree(process.pid, signal.SIGKILL)
            await wait_for_exit(process)

    def _finalize(self, job: Job, exit_code: int, timed_out: bool) -> None:
        if job.finalize(exit_code, timed_out=timed_out):
            self.gate.release()
            logger.debug(f"Job {job.job_id} finished with exit code {exit_code}")
