"""Newline framing of the raw gauge byte stream."""

import logging
from typing import Optional

from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.errors import EndOfStreamError
from vacuum_gauge_lib.transport import Transport

logger = logging.getLogger(__name__)


class LineFramer:
    """Turns the byte stream from a Transport into trimmed text lines.

    Bytes are pulled one at a time, so the framer copes with a port that
    delivers a line in arbitrarily small pieces. A partially received line
    survives read timeouts and is completed by the next call.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._buffer = bytearray()

    def next_line(self) -> Optional[str]:
        """Read until the next LF and return the line without surrounding whitespace.

        Returns:
            The framed line (may be empty), or None if a read timed out before
            the terminator arrived. Bytes accumulated so far are kept.

        Raises:
            EndOfStreamError: If the stream ends; any partial line is discarded
        """
        while True:
            try:
                byte = self._transport.read_byte()
            except EndOfStreamError:
                if self._buffer:
                    logger.debug(f"Discarding partial line at end of stream: {bytes(self._buffer)!r}")
                self._buffer.clear()
                raise

            if byte is None:
                return None

            if byte == protocol.LINE_TERMINATOR[0]:
                line = self._buffer.decode("ascii", errors="replace").strip()
                self._buffer.clear()
                logger.debug(f"Received line: {line!r}")
                return line

            self._buffer.append(byte)

    def reset(self) -> None:
        """Drop any partially accumulated line."""
        self._buffer.clear()

    def seed(self, data: bytes) -> None:
        """Start the current line with bytes that were read by someone else.

        Used for the first data bytes the handshake pulled off the wire
        while looking for the end of the ACK.
        """
        if data:
            logger.debug(f"Framer seeded with {data!r}")
        self._buffer[:0] = data

    @property
    def pending(self) -> bytes:
        """Bytes of the line currently being accumulated."""
        return bytes(self._buffer)
