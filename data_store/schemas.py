"""Schema normalization for gauge samples to DataFrame format.

Every row carries the same columns so chart data and CSV exports look the
same regardless of the polling mode the samples came from.
"""

from datetime import datetime
from typing import Any, Dict

from vacuum_gauge_lib.models import Sample

# DataFrame schema: column names and their dtypes
SCHEMA = {
    "timestamp": str,  # Local time, ISO 8601 with offset
    "value": float,  # Pressure reading
    "status": str,  # Status/channel code from field 0
    "raw_line": str,  # Line as received
}

# Log sink timestamp, millisecond resolution: yyyy-MM-dd HH:mm:ss.SSS
LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_HEADER = "#    [DateTime]             Pressure [mBar]\n"


def format_log_timestamp(ts: datetime) -> str:
    """Format a timestamp as yyyy-MM-dd HH:mm:ss.SSS."""
    return f"{ts.strftime(LOG_TIMESTAMP_FORMAT)}.{ts.microsecond // 1000:03d}"


def sample_to_row(sample: Sample) -> Dict[str, Any]:
    """Convert a Sample to a DataFrame row dictionary.

    Naive timestamps are interpreted as local time.

    Args:
        sample: A Sample taken from the engine channel

    Returns:
        Dictionary with all SCHEMA keys, ready for DataFrame append
    """
    ts = sample.timestamp
    if ts.tzinfo is None:
        ts = ts.astimezone()

    return {
        "timestamp": ts.isoformat(),
        "value": sample.value,
        "status": sample.status,
        "raw_line": sample.raw_line,
    }
