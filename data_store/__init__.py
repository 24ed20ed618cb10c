"""Consumers of the gauge sample stream: chart store and measurement log."""

from data_store.log_sink import LogSink
from data_store.schemas import SCHEMA, sample_to_row
from data_store.store import ChartStore, SinkRecorder

__all__ = ["SCHEMA", "sample_to_row", "ChartStore", "LogSink", "SinkRecorder"]
