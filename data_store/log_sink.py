"""Append-only text log of every received measurement line."""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO, Union

from data_store.schemas import LOG_HEADER, format_log_timestamp
from vacuum_gauge_lib.models import MalformedLineEvent, Sample

logger = logging.getLogger(__name__)


class LogSink:
    """Durable text log in the gauge's classic output format.

    Each session appends a header line followed by one line per sample or
    malformed line:

        #    [DateTime]             Pressure [mBar]
        [2025-05-09 14:03:11.250]   0,1.2300E-03

    Lines are flushed as they are written.
    """

    def __init__(self, path: Union[str, Path] = "output.txt") -> None:
        self._path = Path(path)
        self._file: Optional[TextIO] = None
        self._lock = threading.Lock()
        self._lines_written = 0

    def open(self) -> None:
        """Open the file for appending and write the session header."""
        with self._lock:
            if self._file is not None:
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self._path, "a", encoding="utf-8", newline="\n")
            self._file.write(LOG_HEADER)
            self._file.flush()
            logger.info(f"Logging measurements to {self._path.resolve()}")

    def record(self, timestamp: datetime, raw_line: str) -> None:
        """Append one timestamped line."""
        with self._lock:
            if self._file is None:
                raise RuntimeError("LogSink is not open")
            self._file.write(f"[{format_log_timestamp(timestamp)}]   {raw_line}\n")
            self._file.flush()
            self._lines_written += 1

    def record_sample(self, sample: Sample) -> None:
        self.record(sample.timestamp, sample.raw_line)

    def record_malformed(self, event: MalformedLineEvent) -> None:
        self.record(event.timestamp, event.raw_line)

    def close(self) -> None:
        """Close the file. Safe to call more than once."""
        with self._lock:
            if self._file is None:
                return
            self._file.close()
            self._file = None
            logger.debug(f"Closed measurement log after {self._lines_written} lines")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lines_written(self) -> int:
        return self._lines_written
