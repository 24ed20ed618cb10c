"""
vacuum_gauge_lib - Serial polling engine for TPG-style vacuum gauge controllers.

Supports the fast fixed (100 ms), slow fixed (1 s) and host-paced manual
output modes of the gauge's COM command.
"""

from vacuum_gauge_lib.channel import SampleChannel
from vacuum_gauge_lib.engine import GaugeEngine
from vacuum_gauge_lib.errors import (
    ConfigError,
    EndOfStreamError,
    GaugeError,
    HandshakeTimeout,
    MalformedLineError,
    NumericParseError,
    PortUnavailable,
    SerialIOError,
)
from vacuum_gauge_lib.models import (
    AckEvent,
    EndOfStreamEvent,
    EngineConfig,
    EngineState,
    MalformedLineEvent,
    PollMode,
    Sample,
    TimeoutEvent,
)

__version__ = "0.1.0"

__all__ = [
    "GaugeEngine",
    "SampleChannel",
    "EngineConfig",
    "EngineState",
    "PollMode",
    "Sample",
    "AckEvent",
    "TimeoutEvent",
    "MalformedLineEvent",
    "EndOfStreamEvent",
    "GaugeError",
    "ConfigError",
    "PortUnavailable",
    "HandshakeTimeout",
    "SerialIOError",
    "EndOfStreamError",
    "MalformedLineError",
    "NumericParseError",
]
