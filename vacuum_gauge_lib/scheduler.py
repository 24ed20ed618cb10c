"""Read/parse/emit loop driving the POLLING state."""

import logging
import threading
import time
from typing import Callable, Optional, Union

from vacuum_gauge_lib import parsing
from vacuum_gauge_lib.errors import SerialIOError
from vacuum_gauge_lib.framing import LineFramer
from vacuum_gauge_lib.models import (
    AckEvent,
    ChannelItem,
    EngineConfig,
    MalformedLineEvent,
    PollMode,
    PollStats,
    Sample,
    TimeoutEvent,
)
from vacuum_gauge_lib.transport import Transport

logger = logging.getLogger(__name__)

Emit = Callable[[ChannelItem], None]


def compute_sleep(interval_s: float, elapsed_s: float) -> float:
    """Time left in a manual cycle, clamped at zero.

    Args:
        interval_s: Configured cycle interval
        elapsed_s: Time the cycle body took

    Returns:
        Seconds to sleep before the next cycle (never negative)
    """
    return max(interval_s - elapsed_s, 0.0)


class InstrumentPacedCadence:
    """Fast/slow fixed modes: the gauge streams, the host just keeps reading.

    There is no host-side sleep; each cycle is one framed-line read. With
    idle_timeout_ms unset a silent gauge is waited on forever (one read
    timeout at a time, so cancellation is still observed).
    """

    def __init__(self, config: EngineConfig) -> None:
        self._idle_timeout_s = (
            config.idle_timeout_ms / 1000.0 if config.idle_timeout_ms is not None else None
        )
        self._last_line_at: Optional[float] = None

    def run_cycle(self, scheduler: "PollScheduler") -> None:
        now = scheduler.clock()
        if self._last_line_at is None:
            self._last_line_at = now
        scheduler.stats.cycles += 1
        scheduler.stats.last_cycle_start = now

        line = scheduler.framer.next_line()
        if line is None:
            self._check_idle(scheduler.clock())
            return

        self._last_line_at = scheduler.clock()
        scheduler.dispatch(line)

    def _check_idle(self, now: float) -> None:
        if self._idle_timeout_s is None or self._last_line_at is None:
            return
        idle = now - self._last_line_at
        if idle >= self._idle_timeout_s:
            raise SerialIOError(f"Gauge idle for {idle:.1f}s, no data received")


class HostPacedCadence:
    """Manual mode: one reading per host-timed cycle.

    Each cycle clears stale input, waits up to the read timeout for one data
    line and then sleeps out the rest of the interval. An overrun cycle is
    followed immediately by the next one.
    """

    def __init__(self, config: EngineConfig) -> None:
        assert config.manual_interval_s is not None
        self._interval_s = config.manual_interval_s
        self._window_s = config.read_timeout_s

    def run_cycle(self, scheduler: "PollScheduler") -> None:
        start = scheduler.clock()
        scheduler.stats.cycles += 1
        scheduler.stats.last_cycle_start = start

        scheduler.transport.discard_input()
        scheduler.framer.reset()

        self._read_one(scheduler, start)

        elapsed = scheduler.clock() - start
        sleep_s = compute_sleep(self._interval_s, elapsed)
        if elapsed > self._interval_s:
            scheduler.stats.underruns += 1
            logger.warning(
                f"Cycle took {elapsed * 1000:.0f} ms, longer than the "
                f"{self._interval_s * 1000:.0f} ms interval; starting next cycle now"
            )
            return

        logger.debug(f"Cycle body {elapsed * 1000:.0f} ms, sleeping {sleep_s * 1000:.0f} ms")
        scheduler.stop_event.wait(timeout=sleep_s)

    def _read_one(self, scheduler: "PollScheduler", start: float) -> None:
        deadline = start + self._window_s

        while not scheduler.stop_event.is_set() and scheduler.clock() < deadline:
            line = scheduler.framer.next_line()
            if line is None:
                continue
            outcome = scheduler.dispatch(line)
            if isinstance(outcome, (Sample, MalformedLineEvent)):
                return

        if scheduler.stop_event.is_set():
            return

        waited_ms = int((scheduler.clock() - start) * 1000)
        scheduler.stats.timeouts += 1
        logger.warning(f"No reading within {waited_ms} ms this cycle")
        scheduler.emit(TimeoutEvent(waited_ms=waited_ms))


Cadence = Union[InstrumentPacedCadence, HostPacedCadence]


def cadence_for(config: EngineConfig) -> Cadence:
    """Pick the cadence strategy for the configured mode."""
    if config.mode is PollMode.MANUAL:
        return HostPacedCadence(config)
    return InstrumentPacedCadence(config)


class PollScheduler:
    """Drives framer and parser at the mode's cadence and emits the results.

    Malformed lines are reported and polling continues. I/O failures (including
    end of stream) propagate to the caller; they are never retried here.
    """

    def __init__(
        self,
        transport: Transport,
        config: EngineConfig,
        emit: Emit,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        pending: bytes = b"",
    ) -> None:
        """Initialize scheduler.

        Args:
            transport: Open transport, owned by the calling thread
            config: Validated engine configuration
            emit: Called with every Sample and ProtocolEvent, in order
            stop_event: Set by another thread to request cancellation
            clock: Monotonic clock in seconds
            pending: Bytes of the first line already read by the handshake
        """
        self._transport = transport
        self._framer = LineFramer(transport)
        self._framer.seed(pending)
        self._config = config
        self._emit = emit
        self._stop_event = stop_event or threading.Event()
        self._clock = clock
        self._cadence = cadence_for(config)
        self.stats = PollStats()

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def framer(self) -> LineFramer:
        return self._framer

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    def clock(self) -> float:
        return self._clock()

    def run(self) -> None:
        """Poll until the stop event is set.

        Raises:
            EndOfStreamError: If the gauge stream ends
            SerialIOError: On any other fatal I/O failure
        """
        logger.info(f"Poll loop started in {self._config.mode.value} mode (thread {threading.get_ident()})")

        while not self._stop_event.is_set():
            self._cadence.run_cycle(self)

        logger.info("Poll loop stopped")

    def dispatch(self, line: str) -> Optional[parsing.LineOutcome]:
        """Classify one framed line, update counters and emit the outcome."""
        outcome = parsing.classify_line(line)
        if outcome is None:
            return None

        if isinstance(outcome, Sample):
            self.stats.samples += 1
        elif isinstance(outcome, AckEvent):
            self.stats.acks += 1
            logger.debug("ACK line ignored")
        elif isinstance(outcome, MalformedLineEvent):
            self.stats.malformed += 1
            logger.warning(f"Invalid line format ({outcome.reason}): {line!r}")

        self.emit(outcome)
        return outcome

    def emit(self, item: ChannelItem) -> None:
        self._emit(item)
