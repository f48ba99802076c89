"""Packet assembler for the RayNeo USB byte stream.

Turns arbitrarily chunked USB reads into discrete, length-delimited frames.
Owned by the session's I/O thread; not thread-safe.
"""
import logging
from typing import Optional

from .constants import ASSEMBLER_CAPACITY, PKT_LENGTH_OFFSET, PKT_MAGIC, PKT_MIN_LENGTH

logger = logging.getLogger(__name__)


class PacketAssembler:
    """Fixed-capacity byte accumulator with sync-byte resynchronization.

    A frame starts with PKT_MAGIC and carries its total length at
    PKT_LENGTH_OFFSET. Bytes that cannot start a frame are discarded.
    Writes that do not fit reset the buffer instead of growing it.
    """

    def __init__(self, capacity: int = ASSEMBLER_CAPACITY):
        """Initialize assembler.

        Args:
            capacity: Maximum number of buffered bytes.
        """
        self._capacity = capacity
        self._buffer = bytearray()
        self._overflow_count = 0

    def append(self, data: bytes, count: Optional[int] = None) -> None:
        """Append the first `count` bytes of `data` (all of it by default).

        If the chunk does not fit in the remaining capacity, everything
        buffered so far is dropped first. A chunk larger than the whole
        capacity is truncated to it.
        """
        if count is None:
            count = len(data)
        count = min(count, len(data))
        if count <= 0:
            return

        if count >= self._capacity or len(self._buffer) + count > self._capacity:
            self._overflow_count += 1
            if self._overflow_count % 100 == 1:
                logger.warning(f"Assembler overflow: dropped {len(self._buffer)} buffered bytes")
            self._buffer.clear()

        copy_len = min(count, self._capacity - len(self._buffer))
        self._buffer += data[:copy_len]

    def next_packet(self) -> Optional[bytes]:
        """Extract the next complete frame.

        Call repeatedly until it returns None to drain every buffered frame.

        Returns:
            Frame bytes, or None if no complete frame is buffered yet
        """
        buf = self._buffer
        offset = 0

        while offset + PKT_MIN_LENGTH <= len(buf):
            if buf[offset] != PKT_MAGIC:
                offset += 1
                continue

            packet_len = buf[offset + PKT_LENGTH_OFFSET]
            if packet_len < PKT_MIN_LENGTH:
                offset += 1
                continue

            if offset + packet_len > len(buf):
                break

            packet = bytes(buf[offset:offset + packet_len])
            if offset:
                logger.debug(f"Resync: skipped {offset} bytes before frame")
            del buf[:offset + packet_len]
            return packet

        if offset > 0:
            del buf[:offset]
        return None

    @property
    def size(self) -> int:
        """Current number of buffered bytes."""
        return len(self._buffer)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def overflow_count(self) -> int:
        """Number of appends that reset the buffer."""
        return self._overflow_count

    def clear(self) -> None:
        """Drop everything buffered."""
        self._buffer.clear()
