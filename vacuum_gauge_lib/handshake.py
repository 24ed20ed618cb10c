"""One-time mode negotiation with the gauge."""

import logging
import threading
import time
from typing import Callable, Optional

from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.errors import HandshakeTimeout
from vacuum_gauge_lib.models import EngineConfig, PollMode
from vacuum_gauge_lib.transport import Transport

logger = logging.getLogger(__name__)

# Bytes that may trail the ACK byte before the first data line
_ACK_LINE_BYTES = frozenset(
    [protocol.ACK, protocol.INPUT_TERMINATOR[0], protocol.LINE_TERMINATOR[0]]
)


class HandshakeNegotiator:
    """Sends the mode command and, for fixed-interval modes, waits for the ACK.

    Fixed-interval modes are paced by the gauge and must be acknowledged with
    a single 0x06 byte before data flows. Manual mode is paced by the host; the
    gauge answers each cycle instead, so negotiation is only the command plus
    a settle delay.
    """

    def __init__(
        self,
        transport: Transport,
        config: EngineConfig,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._config = config
        self._stop_event = stop_event or threading.Event()
        self._clock = clock
        self._leftover = b""

    @property
    def leftover(self) -> bytes:
        """First data bytes read while draining the ACK line, to be framed next."""
        return self._leftover

    def negotiate(self) -> bool:
        """Place the gauge into the configured mode.

        Returns:
            True when the gauge is ready for polling, False if the stop event
            was set during negotiation

        Raises:
            HandshakeTimeout: If a fixed-interval mode is not acknowledged in time
            SerialIOError: If the command cannot be written
        """
        mode = self._config.mode
        logger.info(f"Negotiating {mode.value} mode with command {mode.command!r}")
        self._transport.write_cmd(mode.command)

        if mode is PollMode.MANUAL:
            return self._settle()

        if not self._wait_for_ack():
            return False
        self._drain()
        logger.info(f"Gauge acknowledged {mode.value} mode")
        return True

    def _settle(self) -> bool:
        settle_s = self._config.settle_ms / 1000.0
        logger.debug(f"Manual mode: settling for {settle_s:.3f}s")
        return not self._stop_event.wait(timeout=settle_s)

    def _wait_for_ack(self) -> bool:
        """Poll for the ACK byte, discarding anything else that arrives first."""
        timeout_s = self._config.handshake_timeout_ms / 1000.0
        deadline = self._clock() + timeout_s

        while self._clock() < deadline:
            if self._stop_event.is_set():
                logger.info("Negotiation cancelled")
                return False

            if self._transport.available_count() == 0:
                time.sleep(protocol.HANDSHAKE_POLL_STEP_S)
                continue

            byte = self._transport.read_byte()
            if byte is None:
                continue
            if byte == protocol.ACK:
                return True
            logger.debug(f"Discarding byte 0x{byte:02x} received before ACK")

        raise HandshakeTimeout(
            f"No ACK for {self._config.mode.command!r} within {self._config.handshake_timeout_ms} ms"
        )

    def _drain(self) -> None:
        """Discard the rest of the ACK line (CR, LF, repeated ACK) for a short grace period.

        The first byte that is not part of the ACK line belongs to the first
        data line; it is kept in ``leftover`` instead of being thrown away.
        """
        deadline = self._clock() + self._config.drain_grace_ms / 1000.0
        drained = bytearray()

        while self._clock() < deadline:
            if self._transport.available_count() == 0:
                time.sleep(protocol.HANDSHAKE_POLL_STEP_S)
                continue

            byte = self._transport.read_byte()
            if byte is None:
                continue
            if byte not in _ACK_LINE_BYTES:
                self._leftover = bytes([byte])
                break
            drained.append(byte)
            if byte == protocol.LINE_TERMINATOR[0]:
                break

        if drained:
            logger.debug(f"Drained {len(drained)} bytes after ACK: {bytes(drained)!r}")
        if self._leftover:
            logger.debug(f"Data follows ACK directly, keeping {self._leftover!r}")
