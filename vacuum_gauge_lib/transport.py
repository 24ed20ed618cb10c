"""Serial transport layer for vacuum gauge communication."""

import logging
from typing import Optional, Protocol

import serial

from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.errors import EndOfStreamError, PortUnavailable, SerialIOError

logger = logging.getLogger(__name__)


class SerialLike(Protocol):
    """Protocol for serial port interface (allows test doubles)."""

    def write(self, data: bytes) -> int:
        """Write bytes to serial port."""
        ...

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes, returning b"" on timeout."""
        ...

    def flush(self) -> None:
        """Flush output buffer (force transmission)."""
        ...

    def close(self) -> None:
        """Close serial port."""
        ...

    @property
    def in_waiting(self) -> int:
        """Number of bytes buffered for reading."""
        ...

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        ...


class Transport:
    """Byte-level wrapper around pyserial with no protocol knowledge.

    The transport is owned by a single thread for its whole lifetime; it does
    no locking of its own.
    """

    def __init__(self, serial_port: SerialLike, port_name: str = "<injected>") -> None:
        """Initialize transport with a serial port instance.

        Args:
            serial_port: Object implementing SerialLike protocol
                        (e.g., serial.Serial or FakeGauge for testing)
            port_name: Name used in log messages
        """
        self._port = serial_port
        self._port_name = port_name
        self._released = False

    @classmethod
    def open(
        cls,
        port: str,
        baud: int = protocol.DEFAULT_BAUD,
        bytesize: int = serial.EIGHTBITS,
        parity: str = serial.PARITY_NONE,
        stopbits: float = serial.STOPBITS_ONE,
        read_timeout_s: float = protocol.DEFAULT_READ_TIMEOUT_MS / 1000.0,
    ) -> "Transport":
        """Open a real serial port with exclusive access.

        Args:
            port: Serial port device name (e.g., "/dev/ttyUSB0" or "COM3")
            baud: Baud rate. Default 9600 matches the gauge factory setting.
            bytesize: Data bits. Default 8.
            parity: Parity. Default none.
            stopbits: Stop bits. Default 1.
            read_timeout_s: Read timeout in seconds.

        Returns:
            Transport instance wrapping opened serial port

        Raises:
            PortUnavailable: If the port does not exist or is already held
        """
        try:
            ser = serial.Serial(
                port=port,
                baudrate=baud,
                bytesize=bytesize,
                parity=parity,
                stopbits=stopbits,
                timeout=read_timeout_s,
                rtscts=False,
                dsrdtr=False,
                xonxoff=False,
                exclusive=True,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise PortUnavailable(f"Port {port} could not be opened at {baud} baud: {e}") from e

        logger.info(f"Opened serial port {port} at {baud} baud, timeout={read_timeout_s}s")
        return cls(ser, port_name=port)

    @property
    def port_name(self) -> str:
        return self._port_name

    @property
    def is_open(self) -> bool:
        """Check if port is currently open and not yet released."""
        return not self._released and self._port.is_open

    def close(self) -> None:
        """Release the serial port. Safe to call repeatedly and from any state."""
        if self._released:
            return
        self._released = True

        try:
            if self._port.is_open:
                self._port.close()
        except (serial.SerialException, OSError) as e:
            logger.warning(f"Error while closing {self._port_name}: {e}")

        logger.info(f"Port {self._port_name} is closed")

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to port (no automatic termination).

        Raises:
            SerialIOError: If the port is closed or the write fails
        """
        self._ensure_open()

        try:
            sent = self._port.write(data)
            self._port.flush()
            logger.debug(f"Sent {sent} bytes: {data!r}")
        except (serial.SerialException, OSError) as e:
            raise SerialIOError(f"Failed to write to {self._port_name}: {e}") from e

    def write_cmd(self, text: str) -> None:
        """Write an ASCII command followed by the CR terminator.

        Args:
            text: Command string (e.g., "COM,0")

        Raises:
            SerialIOError: If write fails
        """
        self.write_bytes(text.encode("ascii") + protocol.INPUT_TERMINATOR)

    def read_byte(self) -> Optional[int]:
        """Read a single byte, blocking up to the port's read timeout.

        Returns:
            The byte value, or None on timeout

        Raises:
            EndOfStreamError: If the device reports end of stream (disconnect)
            SerialIOError: If the port is not open
        """
        self._ensure_open()

        try:
            data = self._port.read(1)
        except (serial.SerialException, OSError) as e:
            raise EndOfStreamError(f"Stream from {self._port_name} ended: {e}") from e

        if not data:
            return None
        return data[0]

    def available_count(self) -> int:
        """Number of buffered unread bytes. Does not consume anything.

        Raises:
            EndOfStreamError: If the device is gone
        """
        self._ensure_open()

        try:
            return self._port.in_waiting
        except (serial.SerialException, OSError) as e:
            raise EndOfStreamError(f"Stream from {self._port_name} ended: {e}") from e

    def discard_input(self) -> int:
        """Read and throw away every byte that is currently buffered.

        Returns:
            Number of bytes discarded
        """
        discarded = 0
        pending = self.available_count()
        while pending > 0:
            try:
                chunk = self._port.read(pending)
            except (serial.SerialException, OSError) as e:
                raise EndOfStreamError(f"Stream from {self._port_name} ended: {e}") from e
            if not chunk:
                break
            discarded += len(chunk)
            pending = self.available_count()

        if discarded:
            logger.debug(f"Buffer cleared, discarded {discarded} bytes")
        return discarded

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise SerialIOError(f"Serial port {self._port_name} is not open")
