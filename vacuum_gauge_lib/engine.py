"""Polling engine: wires transport, negotiation and scheduling into one unit."""

import logging
import threading
from typing import Optional

from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.channel import SampleChannel
from vacuum_gauge_lib.errors import EndOfStreamError, GaugeError, SerialIOError
from vacuum_gauge_lib.handshake import HandshakeNegotiator
from vacuum_gauge_lib.models import (
    ChannelItem,
    EndOfStreamEvent,
    EngineConfig,
    EngineState,
    PollStats,
    Sample,
)
from vacuum_gauge_lib.scheduler import PollScheduler
from vacuum_gauge_lib.transport import SerialLike, Transport

logger = logging.getLogger(__name__)


class GaugeEngine:
    """Runs one acquisition session against a vacuum gauge.

    A dedicated thread owns the transport for the whole run: it negotiates the
    mode once, then polls until cancelled or until a fatal error. Results are
    published on a bounded channel that consumers read from their own threads.

    An engine is single use. Create a new one for the next session.
    """

    def __init__(
        self,
        config: EngineConfig,
        transport: Optional[Transport] = None,
        channel_size: int = 1000,
    ) -> None:
        """Initialize engine.

        Args:
            config: Validated configuration (validation happens in EngineConfig)
            transport: Optional pre-opened Transport. If None, start() opens one.
            channel_size: Capacity of the output channel. Default 1000.
        """
        self._config = config
        self._transport = transport
        self._state = EngineState.IDLE
        self._channel = SampleChannel(maxlen=channel_size)

        # Polling thread and its cancellation flag
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        # Lock for state transitions
        self._state_lock = threading.Lock()

        self._scheduler: Optional[PollScheduler] = None
        self._error: Optional[GaugeError] = None
        self._error_surfaced = False

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(
        self,
        port: Optional[str] = None,
        baud: int = protocol.DEFAULT_BAUD,
        serial_port: Optional[SerialLike] = None,
    ) -> None:
        """Open the port and start negotiation and polling in the background.

        Args:
            port: Serial port name (e.g., "/dev/ttyUSB0"). Required if neither a
                  transport nor serial_port was given.
            baud: Baud rate. Default 9600.
            serial_port: Pre-configured serial port object (for testing). If
                        provided, port and baud are ignored.

        Raises:
            GaugeError: If the engine was already started
            PortUnavailable: If the port cannot be opened
        """
        with self._state_lock:
            if self._state != EngineState.IDLE or self._thread is not None:
                raise GaugeError(f"Engine already started (state: {self._state.value})")

            if self._transport is None:
                if serial_port is not None:
                    self._transport = Transport(serial_port)
                elif port is not None:
                    try:
                        self._transport = Transport.open(
                            port, baud, read_timeout_s=self._config.read_timeout_s
                        )
                    except GaugeError as e:
                        self._fail_before_start(e)
                        raise
                else:
                    raise ValueError("Must provide either 'port' or 'serial_port'")

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="GaugePoller",
                daemon=True,
            )
            self._thread.start()

        logger.info(f"Engine started in {self._config.mode.value} mode")

    def stop(self, timeout: float = 5.0) -> None:
        """Request cancellation and wait for the polling thread to finish.

        Safe to call in any state and more than once.
        """
        self._stop_event.set()

        with self._state_lock:
            if self._thread is None:
                # Never started: just release whatever was injected
                if self._transport is not None:
                    self._transport.close()
                self._state = EngineState.STOPPED
                return
            thread = self._thread

        if thread.is_alive():
            logger.debug("Stopping polling thread...")
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Polling thread did not stop cleanly")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the run ends.

        The fatal error that ended the run, if any, is raised by the first
        call that observes it.

        Returns:
            True if the run has ended, False if timeout expired first
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                return False

        if self._error is not None and not self._error_surfaced:
            self._error_surfaced = True
            raise self._error
        return True

    # ========================================================================
    # Data Access
    # ========================================================================

    @property
    def channel(self) -> SampleChannel:
        """Output channel carrying Samples and ProtocolEvents in order."""
        return self._channel

    @property
    def state(self) -> EngineState:
        """Current engine state."""
        return self._state

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def error(self) -> Optional[GaugeError]:
        """Fatal error that stopped the run, None while running or after a clean stop."""
        return self._error

    @property
    def stats(self) -> PollStats:
        """Scheduler counters (empty before polling starts)."""
        if self._scheduler is None:
            return PollStats()
        return self._scheduler.stats

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ========================================================================
    # Internal: Polling Thread
    # ========================================================================

    def _run(self) -> None:
        """Thread body: negotiate once, then poll. Always releases the port."""
        assert self._transport is not None
        logger.info(f"Polling thread started (thread {threading.get_ident()})")
        reason = "cancelled"

        try:
            self._set_state(EngineState.NEGOTIATING)
            negotiator = HandshakeNegotiator(self._transport, self._config, self._stop_event)

            if negotiator.negotiate():
                self._scheduler = PollScheduler(
                    self._transport,
                    self._config,
                    self._publish,
                    stop_event=self._stop_event,
                    pending=negotiator.leftover,
                )
                self._set_state(EngineState.POLLING)
                self._scheduler.run()

        except EndOfStreamError as e:
            logger.error(f"Gauge stream ended: {e}")
            self._error = e
            reason = "end of stream"

        except GaugeError as e:
            logger.error(f"Polling stopped by fatal error: {e}")
            self._error = e
            reason = str(e)

        except Exception as e:
            logger.error(f"Unexpected error in polling thread: {e}", exc_info=True)
            self._error = SerialIOError(f"Unexpected polling failure: {e}")
            self._error.__cause__ = e
            reason = str(e)

        finally:
            self._transport.close()
            self._set_state(EngineState.STOPPED)
            self._channel.put(EndOfStreamEvent(reason=reason, error=self._error))
            logger.info(f"Engine stopped ({reason}); stats: {self.stats}")

    def _publish(self, item: ChannelItem) -> None:
        """Report an item on the diagnostic stream and hand it to consumers."""
        if isinstance(item, Sample):
            assert self._state == EngineState.POLLING, "sample emitted outside POLLING"
            logger.info(f"Measurement:   {item.raw_line}")
        self._channel.put(item)

    def _set_state(self, state: EngineState) -> None:
        with self._state_lock:
            logger.debug(f"State {self._state.value} -> {state.value}")
            self._state = state

    def _fail_before_start(self, error: GaugeError) -> None:
        """Record a failure that happened before the polling thread existed."""
        self._error = error
        self._error_surfaced = True
        self._state = EngineState.STOPPED
        self._channel.put(EndOfStreamEvent(reason=str(error), error=error))
