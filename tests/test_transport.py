"""Tests for the serial transport wrapper."""

import pytest
import serial

from fakes.fake_gauge import FakeGauge
from vacuum_gauge_lib.errors import EndOfStreamError, PortUnavailable, SerialIOError
from vacuum_gauge_lib.transport import Transport


def test_close_is_idempotent() -> None:
    """Test that closing twice releases the port exactly once."""
    fake = FakeGauge()
    transport = Transport(fake)

    transport.close()
    transport.close()

    assert fake.close_calls == 1
    assert not transport.is_open


def test_close_before_any_io() -> None:
    """Test that close() is safe on a port that was never used."""
    fake = FakeGauge()
    fake.is_open = False
    transport = Transport(fake)

    transport.close()

    assert fake.close_calls == 0
    assert not transport.is_open


def test_write_cmd_appends_cr() -> None:
    """Test that commands are terminated with CR."""
    fake = FakeGauge(ack=False)
    transport = Transport(fake)

    transport.write_cmd("COM,1")

    assert fake.commands == ["COM,1"]
    transport.close()


def test_write_after_close_fails() -> None:
    """Test that writing to a released port raises SerialIOError."""
    transport = Transport(FakeGauge())
    transport.close()

    with pytest.raises(SerialIOError):
        transport.write_bytes(b"COM\r")


def test_write_on_broken_connection_fails() -> None:
    """Test that a write failure maps to SerialIOError."""
    fake = FakeGauge()
    fake.disconnect()
    transport = Transport(fake)

    with pytest.raises(SerialIOError):
        transport.write_cmd("COM,0")


def test_read_byte_timeout_and_data() -> None:
    """Test read_byte() returns None on timeout and the byte otherwise."""
    fake = FakeGauge(timeout=0.05)
    transport = Transport(fake)

    assert transport.read_byte() is None

    fake.feed(b"\x06")
    assert transport.available_count() == 1
    assert transport.read_byte() == 0x06
    assert transport.available_count() == 0


def test_read_byte_end_of_stream() -> None:
    """Test that a disconnect surfaces as EndOfStreamError."""
    fake = FakeGauge(timeout=0.05)
    fake.disconnect()
    transport = Transport(fake)

    with pytest.raises(EndOfStreamError):
        transport.read_byte()


def test_available_count_does_not_consume() -> None:
    """Test that available_count() only peeks."""
    fake = FakeGauge()
    fake.feed(b"abc")
    transport = Transport(fake)

    assert transport.available_count() == 3
    assert transport.available_count() == 3
    assert transport.read_byte() == ord("a")


def test_discard_input() -> None:
    """Test that discard_input() empties the receive buffer."""
    fake = FakeGauge()
    fake.feed(b"0,1.0\r\n0,2.0\r\n")
    transport = Transport(fake)

    assert transport.discard_input() == 14
    assert transport.available_count() == 0
    assert transport.discard_input() == 0


def test_open_missing_port_raises_port_unavailable(monkeypatch) -> None:
    """Test that pyserial open failures map to PortUnavailable."""

    def fail(*args, **kwargs):
        raise serial.SerialException("could not open port /dev/ttyGAUGE: No such file or directory")

    monkeypatch.setattr(serial, "Serial", fail)

    with pytest.raises(PortUnavailable):
        Transport.open("/dev/ttyGAUGE")


def test_open_uses_gauge_line_settings(monkeypatch) -> None:
    """Test 9600 8N1 with exclusive access and the requested timeout."""
    captured = {}

    def fake_serial(**kwargs):
        captured.update(kwargs)
        return FakeGauge()

    monkeypatch.setattr(serial, "Serial", fake_serial)

    transport = Transport.open("/dev/ttyUSB0", read_timeout_s=0.5)

    assert captured["port"] == "/dev/ttyUSB0"
    assert captured["baudrate"] == 9600
    assert captured["bytesize"] == serial.EIGHTBITS
    assert captured["parity"] == serial.PARITY_NONE
    assert captured["stopbits"] == serial.STOPBITS_ONE
    assert captured["timeout"] == 0.5
    assert captured["exclusive"] is True
    assert transport.port_name == "/dev/ttyUSB0"
    transport.close()
