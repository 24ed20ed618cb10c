"""Tests for line classification and sample parsing."""

from datetime import datetime

import pytest

from vacuum_gauge_lib import parsing
from vacuum_gauge_lib.errors import MalformedLineError, NumericParseError
from vacuum_gauge_lib.models import AckEvent, MalformedLineEvent, Sample


@pytest.mark.parametrize("status", ["0", "1", "5", "", "X", "status text"])
@pytest.mark.parametrize("value", [0.0, 1.23e-3, 1.5e-3, 2.0, -4.25, 1e-9, 1013.25, 5.5e300])
def test_value_is_exact_regardless_of_status(status: str, value: float) -> None:
    """Test that field 1 decodes exactly, whatever field 0 holds."""
    line = f"{status},{value!r}"

    outcome = parsing.classify_line(line)

    assert isinstance(outcome, Sample)
    assert outcome.value == value
    assert outcome.raw_line == line
    assert outcome.status == status.strip()


def test_gauge_exponent_format() -> None:
    """Test the gauge's native scientific notation."""
    sample = parsing.parse_sample("0,1.2300E-03")

    assert sample.value == 0.00123
    assert sample.status == "0"


def test_extra_fields_are_ignored() -> None:
    """Test that only field 1 is used when more fields are present."""
    sample = parsing.parse_sample("0, 7.5E-04 ,mbar,extra")

    assert sample.value == 7.5e-4


def test_empty_line_is_noop() -> None:
    """Test that an empty line yields nothing (not malformed)."""
    assert parsing.classify_line("") is None


@pytest.mark.parametrize("line", ["ACK", "ack", "Ack", "\x06"])
def test_ack_lines(line: str) -> None:
    """Test that ACK text or the raw ACK byte is recognized."""
    outcome = parsing.classify_line(line)

    assert isinstance(outcome, AckEvent)


@pytest.mark.parametrize("line", ["justtext", "1.23E-3", "0;1.5"])
def test_field_count_malformed(line: str) -> None:
    """Test that lines with fewer than two fields are malformed."""
    outcome = parsing.classify_line(line)

    assert isinstance(outcome, MalformedLineEvent)
    assert outcome.reason == "field count"
    assert outcome.raw_line == line


@pytest.mark.parametrize("line", ["0,abc", "0,", "0,1.2.3", "ACK,OK"])
def test_numeric_parse_malformed(line: str) -> None:
    """Test that a non-numeric value field is malformed."""
    outcome = parsing.classify_line(line)

    assert isinstance(outcome, MalformedLineEvent)
    assert outcome.reason == "numeric parse"


def test_parse_sample_raises_typed_errors() -> None:
    """Test that parse_sample raises the error subtypes."""
    with pytest.raises(MalformedLineError) as exc_info:
        parsing.parse_sample("justtext")
    assert exc_info.value.reason == "field count"

    with pytest.raises(NumericParseError):
        parsing.parse_sample("0,not-a-number")

    # NumericParseError is a MalformedLineError
    with pytest.raises(MalformedLineError):
        parsing.parse_sample("0,not-a-number")


def test_ack_byte_glued_to_data_line() -> None:
    """Test that an ACK byte in front of the first data line is dropped."""
    sample = parsing.parse_sample("\x060,4.4E-05")

    assert sample.value == 4.4e-5
    assert sample.status == "0"


def test_captured_at_is_used() -> None:
    """Test that the supplied capture time ends up on the sample."""
    ts = datetime(2025, 5, 9, 14, 3, 11, 250000).astimezone()

    sample = parsing.classify_line("0,1.0", captured_at=ts)

    assert isinstance(sample, Sample)
    assert sample.timestamp == ts


def test_default_timestamp_is_timezone_aware() -> None:
    """Test that samples carry tz-aware local time by default."""
    sample = parsing.parse_sample("0,1.0")

    assert sample.timestamp.tzinfo is not None


@pytest.mark.parametrize("line", ["0,1_5", "0,1_000.0E-3", "0,inf", "0,-inf", "0,nan", "0,0x1p3", "0,١٢"])
def test_python_only_number_forms_are_malformed(line: str) -> None:
    """Test that only plain decimal or scientific values are accepted."""
    outcome = parsing.classify_line(line)

    assert isinstance(outcome, MalformedLineEvent)
    assert outcome.reason == "numeric parse"


@pytest.mark.parametrize("field,value", [("+1.5E+02", 150.0), (".5", 0.5), ("7.", 7.0), ("1e3", 1000.0)])
def test_decimal_forms_accepted(field: str, value: float) -> None:
    assert parsing.parse_sample(f"0,{field}").value == value
