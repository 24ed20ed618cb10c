"""Chart buffer and background sink recorder for gauge samples.

This module provides:
- ChartStore: Rolling window of samples feeding the pressure chart and the
  end-of-run summary and CSV export
- SinkRecorder: Background thread that drains the engine channel into the sinks

Design notes:
- The engine never blocks on consumers; the recorder pulls from the channel
  at its own pace
- The chart receives every Sample exactly once, the log sink additionally
  receives malformed lines
- The recorder finishes on its own when it sees the EndOfStreamEvent
"""

import logging
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Deque, Iterable, List, Optional

import pandas as pd

from data_store.log_sink import LogSink
from data_store.schemas import SCHEMA, sample_to_row
from vacuum_gauge_lib.channel import SampleChannel
from vacuum_gauge_lib.models import (
    ChannelItem,
    EndOfStreamEvent,
    MalformedLineEvent,
    Sample,
)

logger = logging.getLogger(__name__)


class ChartStore:
    """Rolling window of the most recent samples.

    Samples are kept as-is in a bounded deque; pandas objects are only built
    when the chart, the summary or an export asks for them.
    """

    def __init__(self, max_points: int = 100000) -> None:
        """Initialize an empty chart buffer.

        Args:
            max_points: Number of samples kept. Older samples fall off the chart.
        """
        if max_points <= 0:
            raise ValueError(f"max_points must be positive, got {max_points}")

        self._samples: Deque[Sample] = deque(maxlen=max_points)
        self._lock = Lock()

    def append_samples(self, samples: Iterable[Sample]) -> None:
        with self._lock:
            self._samples.extend(samples)

    def series(self) -> pd.Series:
        """Pressure values indexed by capture time, ready for plotting.

        Returns:
            float Series named "value" with a UTC DatetimeIndex
        """
        samples = self._snapshot()
        index = pd.DatetimeIndex(
            pd.to_datetime([s.timestamp for s in samples], utc=True), name="timestamp"
        )
        return pd.Series([s.value for s in samples], index=index, name="value", dtype=float)

    def summary(self) -> dict:
        """Describe the charted run.

        Returns:
            Dictionary with count, start and end (Timestamps or None),
            duration_s, rate_hz, and min, max and mean pressure (None when
            nothing was recorded)
        """
        values = self.series()
        if values.empty:
            return {
                "count": 0,
                "start": None,
                "end": None,
                "duration_s": 0.0,
                "rate_hz": 0.0,
                "min": None,
                "max": None,
                "mean": None,
            }

        duration_s = (values.index[-1] - values.index[0]).total_seconds()
        return {
            "count": len(values),
            "start": values.index[0],
            "end": values.index[-1],
            "duration_s": duration_s,
            "rate_hz": (len(values) - 1) / duration_s if duration_s > 0 else 0.0,
            "min": float(values.min()),
            "max": float(values.max()),
            "mean": float(values.mean()),
        }

    def export_csv(self, path: Optional[str] = None) -> str:
        """Write every charted sample to a CSV file.

        Args:
            path: Output file. Defaults to pressure_<YYYYmmdd_HHMMSS>.csv in
                  the working directory.

        Returns:
            Absolute path of the written file
        """
        if path is None:
            path = f"pressure_{datetime.now():%Y%m%d_%H%M%S}.csv"

        rows = [sample_to_row(s) for s in self._snapshot()]
        pd.DataFrame(rows, columns=list(SCHEMA)).to_csv(path, index=False)

        abs_path = str(Path(path).resolve())
        logger.info(f"Exported {len(rows)} samples to {abs_path}")
        return abs_path

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def _snapshot(self) -> List[Sample]:
        with self._lock:
            return list(self._samples)


class SinkRecorder:
    """Background consumer that drains the engine channel into the sinks.

    Runs a thread that:
    1. Waits on the channel for the next item
    2. Sends Samples to the chart store and the log sink
    3. Sends malformed lines to the log sink only
    4. Exits after the EndOfStreamEvent that ends every engine run
    """

    def __init__(
        self,
        channel: SampleChannel,
        chart: Optional[ChartStore] = None,
        log: Optional[LogSink] = None,
        poll_interval_s: float = 0.2,
    ) -> None:
        """Initialize recorder (does not start automatically).

        Args:
            channel: Engine output channel
            chart: Optional chart store receiving samples
            log: Optional log sink receiving samples and malformed lines
            poll_interval_s: How long each channel wait lasts before the stop
                            flag is checked again
        """
        self._channel = channel
        self._chart = chart
        self._log = log
        self._poll_interval = poll_interval_s

        self._thread: Optional[Thread] = None
        self._stop_event = Event()
        self._end_event: Optional[EndOfStreamEvent] = None

    def start(self) -> None:
        """Open the log sink (writing its session header) and start the thread.

        Raises:
            RuntimeError: If recorder is already running
        """
        if self._thread and self._thread.is_alive():
            raise RuntimeError("Recorder already running")

        if self._log is not None:
            self._log.open()

        self._stop_event.clear()
        self._thread = Thread(
            target=self._recorder_loop,
            name="SinkRecorder",
            daemon=True,
        )
        self._thread.start()
        logger.info("SinkRecorder started")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the recorder to reach the end of the stream.

        Returns:
            True if the recorder thread has finished
        """
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the thread, deliver whatever is still queued and close the log."""
        if self._thread and self._thread.is_alive():
            logger.info("Stopping SinkRecorder...")
            self._stop_event.set()
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("SinkRecorder thread did not stop cleanly")
        self._thread = None

        for item in self._channel.drain():
            self._dispatch(item)

        if self._log is not None:
            self._log.close()
        logger.info("SinkRecorder stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def end_event(self) -> Optional[EndOfStreamEvent]:
        """The EndOfStreamEvent seen so far, if any."""
        return self._end_event

    def _recorder_loop(self) -> None:
        logger.info(f"Recorder loop started (thread {threading.get_ident()})")

        while not self._stop_event.is_set():
            item = self._channel.get(timeout=self._poll_interval)
            if item is None:
                continue

            try:
                self._dispatch(item)
            except Exception as e:
                logger.error(f"Error in recorder loop: {e}", exc_info=True)

            if isinstance(item, EndOfStreamEvent):
                break

        logger.info("Recorder loop stopped")

    def _dispatch(self, item: ChannelItem) -> None:
        if isinstance(item, Sample):
            if self._chart is not None:
                self._chart.append_samples([item])
            if self._log is not None:
                self._log.record_sample(item)
        elif isinstance(item, MalformedLineEvent):
            if self._log is not None:
                self._log.record_malformed(item)
        elif isinstance(item, EndOfStreamEvent):
            self._end_event = item
