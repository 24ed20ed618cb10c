"""Data models for the vacuum gauge polling library."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.errors import ConfigError, GaugeError


class PollMode(Enum):
    """Polling discipline negotiated with the gauge for a whole run."""

    FAST_FIXED = "fast_fixed"
    SLOW_FIXED = "slow_fixed"
    MANUAL = "manual"

    @classmethod
    def from_selection(cls, number: int) -> "PollMode":
        """Map the operator menu number (1, 2 or 3) to a mode.

        Raises:
            ConfigError: If number is not 1, 2 or 3
        """
        try:
            return _SELECTIONS[number]
        except KeyError:
            raise ConfigError(
                f"Incorrect mode {number!r} selected. Valid values are: 1, 2, 3."
            ) from None

    @property
    def command(self) -> str:
        """Mode selection command (without CR terminator)."""
        return _COMMANDS[self]

    @property
    def expects_ack(self) -> bool:
        """Fixed-interval modes are acknowledged with 0x06, manual mode is not."""
        return self is not PollMode.MANUAL

    @property
    def cadence_ms(self) -> Optional[int]:
        """Gauge-side output cadence, None when the host paces readings."""
        if self is PollMode.FAST_FIXED:
            return protocol.FAST_CADENCE_MS
        if self is PollMode.SLOW_FIXED:
            return protocol.SLOW_CADENCE_MS
        return None


_SELECTIONS = {1: PollMode.FAST_FIXED, 2: PollMode.SLOW_FIXED, 3: PollMode.MANUAL}

_COMMANDS = {
    PollMode.FAST_FIXED: protocol.CMD_FAST_FIXED,
    PollMode.SLOW_FIXED: protocol.CMD_SLOW_FIXED,
    PollMode.MANUAL: protocol.CMD_MANUAL,
}


class EngineState(Enum):
    """Engine lifecycle states."""

    IDLE = "idle"
    NEGOTIATING = "negotiating"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass(frozen=True)
class EngineConfig:
    """Immutable polling configuration, validated once at construction.

    Attributes:
        mode: Polling discipline for the run.
        manual_interval_ms: Host interval between readings. Required for MANUAL
            (>= 1100 ms), must be None for the fixed-interval modes.
        read_timeout_ms: Serial read timeout. In MANUAL mode this is also the
            window a cycle waits for its reading.
        handshake_timeout_ms: How long to wait for the ACK byte.
        drain_grace_ms: How long to drain bytes trailing the ACK.
        settle_ms: Delay after the MANUAL mode command.
        idle_timeout_ms: Optional stall detection for fixed-interval modes. When
            set, no complete line within this window is a fatal I/O error.
    """

    mode: PollMode
    manual_interval_ms: Optional[int] = None
    read_timeout_ms: int = protocol.DEFAULT_READ_TIMEOUT_MS
    handshake_timeout_ms: int = protocol.HANDSHAKE_TIMEOUT_MS
    drain_grace_ms: int = protocol.DRAIN_GRACE_MS
    settle_ms: int = protocol.MANUAL_SETTLE_MS
    idle_timeout_ms: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not isinstance(self.mode, PollMode):
            raise ConfigError(f"mode must be a PollMode, got {self.mode!r}")

        if self.mode is PollMode.MANUAL:
            if self.manual_interval_ms is None:
                raise ConfigError("manual_interval_ms is required in manual mode")
            if self.manual_interval_ms < protocol.MANUAL_MIN_INTERVAL_MS:
                raise ConfigError(
                    f"The interval is too short: {self.manual_interval_ms} ms "
                    f"(minimum {protocol.MANUAL_MIN_INTERVAL_MS} ms)"
                )
        elif self.manual_interval_ms is not None:
            raise ConfigError(
                f"manual_interval_ms only applies to manual mode, got "
                f"{self.manual_interval_ms} for {self.mode.value}"
            )

        if self.read_timeout_ms <= 0:
            raise ConfigError(f"read_timeout_ms must be positive, got {self.read_timeout_ms}")
        if self.handshake_timeout_ms <= 0:
            raise ConfigError(
                f"handshake_timeout_ms must be positive, got {self.handshake_timeout_ms}"
            )
        if self.drain_grace_ms < 0 or self.settle_ms < 0:
            raise ConfigError("drain_grace_ms and settle_ms must not be negative")
        if self.idle_timeout_ms is not None and self.idle_timeout_ms <= 0:
            raise ConfigError(f"idle_timeout_ms must be positive, got {self.idle_timeout_ms}")

    @classmethod
    def from_selection(
        cls, number: int, interval_ms: Optional[int] = None, **kwargs: int
    ) -> "EngineConfig":
        """Build a config from the operator's menu answer (1, 2 or 3).

        The interval is only consulted for mode 3.
        """
        mode = PollMode.from_selection(number)
        if mode is not PollMode.MANUAL:
            interval_ms = None
        return cls(mode=mode, manual_interval_ms=interval_ms, **kwargs)

    @property
    def read_timeout_s(self) -> float:
        return self.read_timeout_ms / 1000.0

    @property
    def manual_interval_s(self) -> Optional[float]:
        if self.manual_interval_ms is None:
            return None
        return self.manual_interval_ms / 1000.0


@dataclass(frozen=True)
class Sample:
    """A single pressure reading.

    Attributes:
        timestamp: Local wall-clock time (tz-aware) when the line was parsed.
        value: Pressure in the gauge's configured unit (mbar by default).
        raw_line: Line exactly as framed, terminator stripped.
        status: Status/channel code from field 0. Informational only.
    """

    timestamp: datetime
    value: float
    raw_line: str
    status: str = ""


@dataclass(frozen=True)
class AckEvent:
    """Acknowledgement line seen in the data stream."""

    raw_line: str = protocol.ACK_TEXT


@dataclass(frozen=True)
class TimeoutEvent:
    """No reading arrived inside a manual cycle's read window."""

    waited_ms: int


@dataclass(frozen=True)
class MalformedLineEvent:
    """Line that could not be decoded. Recoverable, polling continues."""

    raw_line: str
    reason: str
    timestamp: datetime


@dataclass(frozen=True)
class EndOfStreamEvent:
    """Final item of every run.

    Attributes:
        reason: Human readable cause ("cancelled", "end of stream", ...).
        error: The fatal error that stopped the engine, None on cancellation.
    """

    reason: str
    error: Optional[GaugeError] = None


ProtocolEvent = Union[AckEvent, TimeoutEvent, MalformedLineEvent, EndOfStreamEvent]

# Everything the engine publishes on its output channel
ChannelItem = Union[Sample, ProtocolEvent]


@dataclass
class PollStats:
    """Running counters kept by the poll scheduler."""

    cycles: int = 0
    samples: int = 0
    malformed: int = 0
    acks: int = 0
    timeouts: int = 0
    underruns: int = 0
    last_cycle_start: Optional[float] = None
