"""Custom exceptions for the vacuum gauge polling library."""


class GaugeError(Exception):
    """Base exception for all vacuum gauge library errors."""

    pass


class ConfigError(GaugeError):
    """Raised when an engine configuration is invalid (mode, interval, timeouts).

    Always raised before any serial I/O happens.
    """

    pass


class PortUnavailable(GaugeError):
    """Raised when the serial port does not exist or is held by another process."""

    pass


class HandshakeTimeout(GaugeError):
    """Raised when the gauge does not acknowledge a mode command in time."""

    pass


class SerialIOError(GaugeError):
    """Raised when serial communication fails (port closed, write failure, etc)."""

    pass


class EndOfStreamError(SerialIOError):
    """Raised when the gauge stream ends (device unplugged or port gone)."""

    pass


class MalformedLineError(GaugeError):
    """Raised when a framed line cannot be decoded into a sample.

    Attributes:
        line: The offending line (terminator already stripped).
        reason: Short classification, e.g. "field count" or "numeric parse".
    """

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"Malformed line ({reason}): {line!r}")
        self.line = line
        self.reason = reason


class NumericParseError(MalformedLineError):
    """Raised when the value field of a line is not a valid number."""

    def __init__(self, line: str) -> None:
        super().__init__(line, "numeric parse")
