"""
Stream capture for process output.
"""

import asyncio
from collections.abc import Callable

from ..logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024


async def capture_stream(
    stream: asyncio.StreamReader,
    write: Callable[[bytes], None],
    report_error: Callable[[str], None],
) -> None:
    """
    Read a stream to end-of-file, passing each chunk to write().

    Chunks are delivered in arrival order. A read error is handed to
    report_error() and ends the capture; it is never raised to the caller.

    Args:
        stream: Process output stream
        write: Receives each chunk
        report_error: Receives the error text on a failed read
    """
    try:
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            write(chunk)
    except Exception as e:
        logger.warning(f"Stream read failed: {e}")
        report_error(f"{type(e).__name__}: {e}\n")
