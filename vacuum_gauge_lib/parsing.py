"""Pure functions for decoding framed gauge lines."""

import logging
import re
from datetime import datetime
from typing import Optional, Union

from vacuum_gauge_lib import protocol
from vacuum_gauge_lib.errors import MalformedLineError, NumericParseError
from vacuum_gauge_lib.models import AckEvent, MalformedLineEvent, Sample

logger = logging.getLogger(__name__)

LineOutcome = Union[Sample, AckEvent, MalformedLineEvent]

# Decimal or scientific notation, NaN and Infinity. Digit underscores, "inf"
# and non-ASCII digits are not numbers on the wire even though float() takes them.
_NUMBER = re.compile(r"[+-]?(?:NaN|Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)", re.ASCII)


def is_ack(line: str) -> bool:
    """Check whether a trimmed line is an acknowledgement rather than data.

    Accepts the raw ACK byte (0x06) or the text "ACK" in any case.
    """
    return line == protocol.ACK_CHAR or line.upper() == protocol.ACK_TEXT


def parse_sample(line: str, captured_at: Optional[datetime] = None) -> Sample:
    """Parse a data line into a Sample.

    Expected format: <status>,<value>[,...]
    Example: "0,1.2300E-03"

    The status field is carried along but never validated; any value is
    accepted.

    Args:
        line: Trimmed line from the gauge
        captured_at: Timestamp to attach. Defaults to now (local time).

    Returns:
        Sample with the value from field 1

    Raises:
        MalformedLineError: If the line has fewer than two fields
        NumericParseError: If field 1 is not a number
    """
    # Gauges may glue the ACK byte to the first line after a mode command
    text = line.strip().lstrip(protocol.ACK_CHAR)

    parts = text.split(protocol.FIELD_SEPARATOR)
    if len(parts) < 2:
        raise MalformedLineError(line, "field count")

    field = parts[protocol.VALUE_FIELD].strip()
    if not _NUMBER.fullmatch(field):
        raise NumericParseError(line)
    value = float(field)

    return Sample(
        timestamp=captured_at or datetime.now().astimezone(),
        value=value,
        raw_line=line,
        status=parts[protocol.STATUS_FIELD].strip(),
    )


def classify_line(line: str, captured_at: Optional[datetime] = None) -> Optional[LineOutcome]:
    """Classify a trimmed line as sample, acknowledgement or malformed data.

    Args:
        line: Trimmed line from the gauge
        captured_at: Timestamp for the sample or malformed event

    Returns:
        None for an empty line (no-op tick), AckEvent for an acknowledgement,
        MalformedLineEvent for undecodable data, otherwise a Sample
    """
    if not line:
        return None

    if is_ack(line):
        return AckEvent(raw_line=line)

    captured_at = captured_at or datetime.now().astimezone()
    try:
        return parse_sample(line, captured_at)
    except MalformedLineError as e:
        logger.debug(f"Unparseable line: {e}")
        return MalformedLineEvent(raw_line=line, reason=e.reason, timestamp=captured_at)
