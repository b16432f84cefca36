"""
Size-capped output buffer.

Once the buffer grows past its cap, only the most recent output is retained.
"""

OUTPUT_CAP_BYTES = 1024 * 1024  # 1 MiB
OUTPUT_KEEP_BYTES = 512 * 1024  # 512 KiB


class OutputBuffer:
    """
    Byte buffer holding the tail of a stream.

    When an append pushes the size past cap_bytes, the buffer is cut down to
    its trailing keep_bytes, so len(buffer) <= cap_bytes always holds. Not
    thread-safe on its own; the owning Job serializes access.
    """

    def __init__(self, cap_bytes: int = OUTPUT_CAP_BYTES, keep_bytes: int = OUTPUT_KEEP_BYTES) -> None:
        if keep_bytes <= 0 or keep_bytes >= cap_bytes:
            raise ValueError("keep_bytes must be positive and smaller than cap_bytes")

        self.cap_bytes = cap_bytes
        self.keep_bytes = keep_bytes
        self.truncated = False
        self._data = bytearray()

    def append(self, chunk: bytes) -> None:
        """Append a chunk, dropping the oldest output if the cap is exceeded."""
        self._data += chunk

        if len(self._data) > self.cap_bytes:
            del self._data[: len(self._data) - self.keep_bytes]
            self.truncated = True

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def text(self) -> str:
        # Trimming can split a multi-byte sequence at the front
        return self._data.decode("utf-8", errors="replace")

    def __len__(self) -> int:
        return len(self._data)
