"""Wire protocol constants for TPG-style vacuum gauge controllers.

Commands are ASCII terminated with CR. The gauge answers mode commands with a
single ACK byte (0x06) and streams measurement lines of the form
``<status>,<value>`` terminated with LF (usually CRLF).
"""

from typing import Final

# ============================================================================
# Line Termination
# ============================================================================

# Gauge expects CR (0x0D) as command terminator
INPUT_TERMINATOR: Final[bytes] = b"\r"

# Lines are framed on LF; a preceding CR is stripped with the whitespace
LINE_TERMINATOR: Final[bytes] = b"\n"

# ============================================================================
# Control Characters
# ============================================================================

ACK: Final[int] = 0x06
ACK_CHAR: Final[str] = "\x06"

# Some firmware echoes the acknowledgement as text
ACK_TEXT: Final[str] = "ACK"

# ============================================================================
# Mode Commands (CR appended by transport)
# ============================================================================

CMD_FAST_FIXED: Final[str] = "COM,0"  # Continuous output every 100 ms
CMD_SLOW_FIXED: Final[str] = "COM,1"  # Continuous output every 1 s
CMD_MANUAL: Final[str] = "COM"  # Host paced readings

# ============================================================================
# Data Line Format
# ============================================================================

FIELD_SEPARATOR: Final[str] = ","
STATUS_FIELD: Final[int] = 0
VALUE_FIELD: Final[int] = 1

# ============================================================================
# Serial Defaults
# ============================================================================

DEFAULT_BAUD: Final[int] = 9600
DEFAULT_READ_TIMEOUT_MS: Final[int] = 1000

# ============================================================================
# Timing Constants (milliseconds)
# ============================================================================

# Fixed-interval cadence produced by the gauge itself
FAST_CADENCE_MS: Final[int] = 100
SLOW_CADENCE_MS: Final[int] = 1000

# Shortest host interval the gauge keeps up with without buffer overruns
MANUAL_MIN_INTERVAL_MS: Final[int] = 1100

# Window for the ACK after a fixed-interval mode command
HANDSHAKE_TIMEOUT_MS: Final[int] = 3000

# Time spent draining bytes trailing the ACK
DRAIN_GRACE_MS: Final[int] = 100

# Delay after the manual mode command before the first cycle
MANUAL_SETTLE_MS: Final[int] = 500

# Sleep between available_count() polls while waiting for the ACK
HANDSHAKE_POLL_STEP_S: Final[float] = 0.01
