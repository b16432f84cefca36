"""
Synchronous runner for short foreground commands.

Blocks the caller until the command exits and returns its full output.
Bypasses the job registry and the concurrency gate.
"""

import asyncio
import signal
import time

from ..logging_config import get_logger
from .capture import capture_stream
from .models import DEFAULT_TIMEOUT_SECONDS, TIMEOUT_EXIT_CODE, ExecOptions, RunResult
from .process import normalize_returncode, signal_process_tree, spawn_shell, wait_for_exit

logger = get_logger(__name__)


async def run_sync(
    command: str,
    options: ExecOptions | None = None,
    shell: str = "bash",
    drain_timeout: float = 1.0,
) -> RunResult:
    """
    Run a command to completion.

    Output is buffered without a cap. A timeout always applies; when options
    carry none, DEFAULT_TIMEOUT_SECONDS is used. On timeout the process tree
    is killed and the result carries TIMEOUT_EXIT_CODE and timed_out=True.

    Args:
        command: Shell command line
        options: Working directory and timeout
        shell: Shell executable
        drain_timeout: Seconds to wait for output after the process exits

    Returns:
        RunResult with stdout, stderr, exit code and duration

    Raises:
        SpawnFailureError: If the process could not be started
    """
    options = (options or ExecOptions()).resolve(DEFAULT_TIMEOUT_SECONDS)
    timeout = options.timeout if options.timeout is not None else DEFAULT_TIMEOUT_SECONDS

    started = time.monotonic()
    process = await spawn_shell(shell, command, options.cwd)

    stdout = bytearray()
    stderr = bytearray()

    def report_error(message: str) -> None:
        stderr.extend(message.encode("utf-8", errors="replace"))

    readers = [
        asyncio.create_task(capture_stream(process.stdout, stdout.extend, report_error)),
        asyncio.create_task(capture_stream(process.stderr, stderr.extend, report_error)),
    ]

    timed_out = False
    try:
        try:
            returncode = await asyncio.wait_for(wait_for_exit(process), timeout=timeout)
            exit_code = normalize_returncode(returncode)
        except asyncio.TimeoutError:
            if process.returncode is not None:
                exit_code = normalize_returncode(process.returncode)
            else:
                logger.warning(f"Command timed out after {timeout}s: {command!r}")
                timed_out = True
                exit_code = TIMEOUT_EXIT_CODE
                signal_process_tree(process.pid, signal.SIGKILL)
                await wait_for_exit(process)

        await asyncio.wait(readers, timeout=drain_timeout)
    finally:
        for reader in readers:
            if not reader.done():
                reader.cancel()
        if process.returncode is None:
            # Caller was cancelled mid-run
            signal_process_tree(process.pid, signal.SIGKILL)

    duration_ms = (time.monotonic() - started) * 1000

    logger.debug(f"Command {command!r} exited with {exit_code} in {duration_ms:.1f}ms")

    return RunResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=exit_code,
        duration_ms=duration_ms,
        timed_out=timed_out,
    )
