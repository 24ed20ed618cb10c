"""Tests for ChartStore, LogSink and SinkRecorder."""

import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pandas as pd
import pytest

from data_store import ChartStore, LogSink, SinkRecorder
from data_store.schemas import LOG_HEADER, format_log_timestamp, sample_to_row
from fakes.fake_gauge import FakeGauge
from vacuum_gauge_lib.channel import SampleChannel
from vacuum_gauge_lib.engine import GaugeEngine
from vacuum_gauge_lib.models import (
    EndOfStreamEvent,
    EngineConfig,
    MalformedLineEvent,
    PollMode,
    Sample,
)

LOG_LINE = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\]   (.*)$")


def make_sample(value: float, ts: Optional[datetime] = None) -> Sample:
    ts = ts or datetime.now().astimezone()
    return Sample(timestamp=ts, value=value, raw_line=f"0,{value:.4E}", status="0")


# ============================================================================
# Schema
# ============================================================================


def test_format_log_timestamp_milliseconds() -> None:
    ts = datetime(2025, 5, 9, 14, 3, 11, 250999)

    assert format_log_timestamp(ts) == "2025-05-09 14:03:11.250"


def test_sample_to_row() -> None:
    ts = datetime(2025, 5, 9, 14, 3, 11).astimezone()
    row = sample_to_row(make_sample(1.5e-3, ts))

    assert row == {
        "timestamp": ts.isoformat(),
        "value": 1.5e-3,
        "status": "0",
        "raw_line": "0,1.5000E-03",
    }


# ============================================================================
# ChartStore
# ============================================================================


def test_chart_series_in_arrival_order() -> None:
    store = ChartStore()
    store.append_samples([make_sample(1e-3), make_sample(2e-3)])

    series = store.series()

    assert len(store) == 2
    assert series.name == "value"
    assert isinstance(series.index, pd.DatetimeIndex)
    assert str(series.index.tz) == "UTC"
    assert list(series) == [1e-3, 2e-3]


def test_chart_empty() -> None:
    store = ChartStore()
    store.append_samples([])

    assert len(store) == 0
    assert store.series().empty
    summary = store.summary()
    assert summary["count"] == 0
    assert summary["min"] is None


def test_chart_keeps_most_recent_points() -> None:
    store = ChartStore(max_points=3)
    store.append_samples([make_sample(float(v)) for v in range(5)])

    assert list(store.series()) == [2.0, 3.0, 4.0]


def test_chart_summary() -> None:
    base = datetime(2025, 5, 9, 12, 0, 0).astimezone()
    store = ChartStore()
    store.append_samples([make_sample(float(v), base + timedelta(seconds=v)) for v in range(1, 5)])

    summary = store.summary()

    assert summary["count"] == 4
    assert summary["duration_s"] == pytest.approx(3.0)
    assert summary["rate_hz"] == pytest.approx(1.0)
    assert summary["min"] == 1.0
    assert summary["max"] == 4.0
    assert summary["mean"] == pytest.approx(2.5)
    assert summary["start"] == pd.Timestamp(base + timedelta(seconds=1))


def test_chart_export_csv(tmp_path) -> None:
    store = ChartStore()
    store.append_samples([make_sample(1.0), make_sample(2.0)])

    path = store.export_csv(str(tmp_path / "run.csv"))
    df = pd.read_csv(path)

    assert list(df.columns) == ["timestamp", "value", "status", "raw_line"]
    assert list(df["value"]) == [1.0, 2.0]
    assert list(df["raw_line"]) == ["0,1.0000E+00", "0,2.0000E+00"]


def test_chart_export_default_name(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    store = ChartStore()

    path = store.export_csv()

    assert re.fullmatch(r"pressure_\d{8}_\d{6}\.csv", Path(path).name)
    assert Path(path).parent == tmp_path.resolve()


def test_chart_invalid_size() -> None:
    with pytest.raises(ValueError):
        ChartStore(max_points=0)


# ============================================================================
# LogSink
# ============================================================================


def test_log_sink_header_and_lines(tmp_path) -> None:
    path = tmp_path / "output.txt"
    sink = LogSink(path)
    sink.open()
    sink.record_sample(make_sample(1.23e-3))
    sink.record_malformed(
        MalformedLineEvent(raw_line="justtext", reason="field count",
                           timestamp=datetime.now().astimezone())
    )
    sink.close()

    lines = path.read_text(encoding="utf-8").splitlines(keepends=True)

    assert lines[0] == LOG_HEADER
    assert LOG_LINE.match(lines[1].rstrip("\n")).group(1) == "0,1.2300E-03"
    assert LOG_LINE.match(lines[2].rstrip("\n")).group(1) == "justtext"
    assert sink.lines_written == 2


def test_log_sink_appends_sessions(tmp_path) -> None:
    """Test that each session adds its own header to the same file."""
    path = tmp_path / "output.txt"
    for _ in range(2):
        sink = LogSink(path)
        sink.open()
        sink.record_sample(make_sample(1.0))
        sink.close()

    lines = path.read_text(encoding="utf-8").splitlines()

    assert len(lines) == 4
    assert lines[0] == lines[2] == LOG_HEADER.rstrip("\n")


def test_log_sink_requires_open(tmp_path) -> None:
    sink = LogSink(tmp_path / "output.txt")

    with pytest.raises(RuntimeError):
        sink.record_sample(make_sample(1.0))

    sink.close()


# ============================================================================
# SinkRecorder
# ============================================================================


def test_recorder_end_to_end(tmp_path) -> None:
    """Test engine -> channel -> recorder -> chart and log."""
    fake = FakeGauge(lines=["0,1.0E-03", "garbage", "0,2.0E-03"], eof_after_lines=True)
    engine = GaugeEngine(EngineConfig(mode=PollMode.FAST_FIXED))
    chart = ChartStore()
    log = LogSink(tmp_path / "output.txt")
    recorder = SinkRecorder(engine.channel, chart=chart, log=log, poll_interval_s=0.05)

    recorder.start()
    engine.start(serial_port=fake)

    assert recorder.join(timeout=10.0)
    recorder.stop()

    assert list(chart.series()) == [1e-3, 2e-3]
    assert isinstance(recorder.end_event, EndOfStreamEvent)
    assert recorder.end_event.reason == "end of stream"

    lines = (tmp_path / "output.txt").read_text(encoding="utf-8").splitlines()
    assert [LOG_LINE.match(line).group(1) for line in lines[1:]] == [
        "0,1.0E-03",
        "garbage",
        "0,2.0E-03",
    ]


def test_recorder_stop_delivers_queued_items() -> None:
    """Test that stop() flushes items still in the channel."""
    channel = SampleChannel()
    chart = ChartStore()
    recorder = SinkRecorder(channel, chart=chart)

    channel.put(make_sample(7.0))
    recorder.stop()

    assert list(chart.series()) == [7.0]
    assert not recorder.is_running()
    assert len(channel) == 0
