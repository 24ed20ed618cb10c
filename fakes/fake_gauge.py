"""Fake serial port that simulates a TPG-style vacuum gauge controller.

This simulator emulates the COM command protocol used by the polling engine:
mode commands, the ACK byte, continuous measurement output at the mode's
cadence, and a disconnect that surfaces the way pyserial reports it.
"""

import logging
import math
import random
import threading
from typing import Iterable, List, Optional

import serial

logger = logging.getLogger(__name__)

ACK = b"\x06"


class FakeGauge:
    """Deterministic simulator of gauge firmware behavior.

    Implements:
    - COM,0 / COM,1: ACK (0x06 CR LF) followed by streaming every 100 ms / 1 s
    - COM: streaming without ACK (host-paced mode)
    - Measurement lines "<status>,<value>" with CR LF terminator
    - Scripted lines and raw byte injection for tests
    - Disconnect: reads raise serial.SerialException once the buffer is empty
    """

    def __init__(
        self,
        lines: Optional[Iterable[str]] = None,
        eof_after_lines: bool = False,
        ack: bool = True,
        ack_bytes: bytes = ACK + b"\r\n",
        noise_before_ack: bytes = b"",
        burst: bool = False,
        fast_period: float = 0.1,
        slow_period: float = 1.0,
        manual_period: float = 0.25,
        stream_delay: float = 0.3,
        status: str = "0",
        timeout: float = 0.2,
    ) -> None:
        """Initialize fake gauge.

        Args:
            lines: Lines to stream verbatim (without terminator) before any
                   generated readings
            eof_after_lines: Disconnect once the scripted lines are sent
            ack: Answer fixed-interval mode commands with ACK
            ack_bytes: Exact acknowledgement sent, a bare 0x06 or 0x06 CR LF
            noise_before_ack: Bytes sent ahead of the ACK
            burst: Send the scripted lines in the same write as the ACK,
                   with no terminator gap in between
            fast_period: Output period after COM,0
            slow_period: Output period after COM,1
            manual_period: Output period after COM
            stream_delay: Delay between the mode command and the first line
            status: Status code used in generated lines
            timeout: Read timeout in seconds
        """
        self.ack = ack
        self.ack_bytes = ack_bytes
        self.burst = burst
        self.noise_before_ack = noise_before_ack
        self.periods = {"COM,0": fast_period, "COM,1": slow_period, "COM": manual_period}
        self.stream_delay = stream_delay
        self.status = status
        self.timeout = timeout
        self.eof_after_lines = eof_after_lines

        self._script: List[str] = list(lines or [])

        # Bytes waiting to be read by the host
        self._output = bytearray()
        self._cond = threading.Condition()

        # Input buffer for commands from "host"
        self._input_buffer = bytearray()
        self.commands: List[str] = []

        # Streaming thread
        self._stream_thread: Optional[threading.Thread] = None
        self._stop_streaming = threading.Event()

        # Port state
        self.is_open = True
        self.close_calls = 0
        self.disconnected = False
        self.lines_sent = 0

    # ========================================================================
    # pyserial surface
    # ========================================================================

    def close(self) -> None:
        """Close the fake serial port."""
        self.close_calls += 1
        self.is_open = False
        self._stop_streaming_thread()
        with self._cond:
            self._cond.notify_all()
        logger.debug("FakeGauge closed")

    def write(self, data: bytes) -> int:
        """Receive bytes from the host; commands are CR terminated."""
        if not self.is_open:
            raise serial.PortNotOpenError()
        if self.disconnected:
            raise serial.SerialException("write failed: device disconnected")

        self._input_buffer.extend(data)
        logger.debug(f"FakeGauge received: {data!r}")
        self._process_input()
        return len(data)

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes, waiting up to timeout for the first one.

        Returns:
            Bytes read, or b"" on timeout

        Raises:
            serial.SerialException: If the device was disconnected and
                                    nothing is left to read
        """
        if not self.is_open:
            raise serial.PortNotOpenError()

        with self._cond:
            self._cond.wait_for(
                lambda: self._output or self.disconnected or not self.is_open,
                timeout=self.timeout,
            )
            if self._output:
                data = bytes(self._output[:size])
                del self._output[:size]
                return data
            if self.disconnected:
                raise serial.SerialException(
                    "device reports readiness to read but returned no data "
                    "(device disconnected or multiple access on port?)"
                )
            return b""

    @property
    def in_waiting(self) -> int:
        with self._cond:
            if self.disconnected and not self._output:
                raise serial.SerialException("device disconnected")
            return len(self._output)

    def flush(self) -> None:
        """Flush output buffer (no-op, writes are immediate)."""
        pass

    def reset_input_buffer(self) -> None:
        with self._cond:
            self._output.clear()

    # ========================================================================
    # Test controls
    # ========================================================================

    def feed(self, data: bytes) -> None:
        """Inject raw bytes as if the gauge had sent them."""
        with self._cond:
            self._output.extend(data)
            self._cond.notify_all()

    def feed_lines(self, *lines: str) -> None:
        for line in lines:
            self.feed(line.encode("ascii") + b"\r\n")

    def disconnect(self) -> None:
        """Simulate pulling the cable."""
        self._stop_streaming.set()
        with self._cond:
            self.disconnected = True
            self._cond.notify_all()
        logger.debug("FakeGauge disconnected")

    # ========================================================================
    # Internal: Command Handling
    # ========================================================================

    def _process_input(self) -> None:
        while b"\r" in self._input_buffer:
            idx = self._input_buffer.index(b"\r")
            cmd = bytes(self._input_buffer[:idx]).decode("ascii", errors="ignore").upper()
            self._input_buffer = self._input_buffer[idx + 1:]
            self.commands.append(cmd)
            self._handle_command(cmd)

    def _handle_command(self, cmd: str) -> None:
        if cmd not in self.periods:
            logger.debug(f"FakeGauge ignoring unknown command {cmd!r}")
            return

        self._stop_streaming_thread()

        if cmd != "COM":
            if self.noise_before_ack:
                self.feed(self.noise_before_ack)
            if not self.ack:
                logger.debug("FakeGauge withholding ACK")
                return
            if self.burst:
                self._send_burst()
                return
            self.feed(self.ack_bytes)

        self._start_streaming_thread(self.periods[cmd])

    def _send_burst(self) -> None:
        """ACK and every scripted line in one chunk, as a gauge with a full FIFO sends them."""
        lines = b"".join(line.encode("ascii") + b"\n" for line in self._script)
        self.lines_sent += len(self._script)
        self._script.clear()
        self.feed(self.ack_bytes + lines)
        if self.eof_after_lines:
            self.disconnect()

    # ========================================================================
    # Internal: Streaming
    # ========================================================================

    def _start_streaming_thread(self, period: float) -> None:
        self._stop_streaming.clear()
        self._stream_thread = threading.Thread(
            target=self._streaming_loop,
            args=(period,),
            name="FakeGaugeStream",
            daemon=True,
        )
        self._stream_thread.start()
        logger.debug(f"Started streaming thread, period={period:.3f}s")

    def _stop_streaming_thread(self) -> None:
        if self._stream_thread and self._stream_thread.is_alive():
            self._stop_streaming.set()
            if threading.current_thread() is not self._stream_thread:
                self._stream_thread.join(timeout=2.0)
            self._stream_thread = None

    def _streaming_loop(self, period: float) -> None:
        if self._stop_streaming.wait(timeout=self.stream_delay):
            return

        while not self._stop_streaming.is_set():
            if self._script:
                self.feed_lines(self._script.pop(0))
            elif self.eof_after_lines:
                self.disconnect()
                break
            else:
                self.feed_lines(self._generate_line())
            self.lines_sent += 1
            if self._stop_streaming.wait(timeout=period):
                break

        logger.debug("Streaming loop stopped")

    def _generate_line(self) -> str:
        """Random pressure in the high-vacuum range, formatted like the gauge."""
        value = math.pow(10, random.uniform(-7, -2))
        return f"{self.status},{value:.4E}"
