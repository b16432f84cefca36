"""
Process spawning and signalling.

Commands run as `<shell> -c <command>`. Signals go to the whole process tree
so that children forked by the shell do not outlive a stop or timeout.
"""

import asyncio
import signal
from pathlib import Path

import psutil

from ..errors import SpawnFailureError
from ..logging_config import get_logger

logger = get_logger(__name__)

# Seconds between checks of the process handle while waiting for exit
EXIT_POLL_INTERVAL = 0.05


async def spawn_shell(shell: str, command: str, cwd: Path | None = None) -> asyncio.subprocess.Process:
    """
    Start a shell command with piped stdout and stderr.

    Args:
        shell: Shell executable (e.g. "bash")
        command: Command line passed to `shell -c`
        cwd: Working directory (inherited if None)

    Returns:
        Running process

    Raises:
        SpawnFailureError: If the process could not be started
    """
    try:
        return await asyncio.create_subprocess_exec(
            shell,
            "-c",
            command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to spawn {command!r} in {cwd}: {e}")
        raise SpawnFailureError(command, str(e)) from e


async def wait_for_exit(process: asyncio.subprocess.Process, poll_interval: float = EXIT_POLL_INTERVAL) -> int:
    """
    Wait until the process itself has exited.

    Process.wait() also waits for the stdout/stderr pipes to close. A
    descendant left running in the background keeps them open, so the
    returncode set by the child watcher is polled instead.

    Args:
        process: Spawned process
        poll_interval: Seconds between checks

    Returns:
        Raw returncode (negative for death by signal)
    """
    while process.returncode is None:
        await asyncio.sleep(poll_interval)
    return process.returncode


def signal_process_tree(pid: int, sig: signal.Signals = signal.SIGTERM) -> bool:
    """
    Send a signal to a process and all of its descendants.

    Args:
        pid: Root process ID
        sig: Signal to send

    Returns:
        True if the root process received the signal
    """
    try:
        root = psutil.Process(pid)
        children = root.children(recursive=True)
    except psutil.NoSuchProcess:
        return False

    try:
        root.send_signal(sig)
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied as e:
        logger.warning(f"Cannot signal process {pid}: {e}")
        return False

    for child in children:
        try:
            child.send_signal(sig)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            # Already gone or not ours
            continue

    logger.debug(f"Sent {sig.name} to process tree {pid} ({len(children)} children)")
    return True


def normalize_returncode(returncode: int) -> int:
    """
    Map a returncode to a shell-style exit status.

    asyncio reports death by signal N as -N; shells report 128 + N.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode
