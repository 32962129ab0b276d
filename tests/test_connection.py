"""
Tests for port resolution, opening and teardown.
"""

import threading
from unittest.mock import patch

import pytest
import serial

from somfycul import (
    CULConfig,
    CommunicationError,
    ConnectionHandle,
    PortNotFoundError,
    PortRegistry,
    SERIAL_PORTS,
    available_ports,
    open_connection,
    resolve_port,
)

from conftest import MockSerial, comports


# =============================================================================
# PORT ALLOW-LIST
# =============================================================================

class TestPortRegistry:

    def test_add_is_set_union(self):
        registry = PortRegistry()
        assert registry.add("/dev/ttyACM0") is True
        assert registry.add("/dev/ttyUSB0") is True
        assert registry.add("/dev/ttyACM0") is False
        assert registry.names() == ["/dev/ttyACM0", "/dev/ttyUSB0"]
        assert "/dev/ttyUSB0" in registry

    def test_concurrent_adds(self):
        registry = PortRegistry()
        names = [f"/dev/ttyCUL{i % 5}" for i in range(200)]
        threads = [threading.Thread(target=registry.add, args=(name,)) for name in names]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert registry.names() == sorted(set(names))

    def test_clear(self):
        registry = PortRegistry()
        registry.add("COM1")
        registry.clear()
        assert registry.names() == []


# =============================================================================
# RESOLUTION
# =============================================================================

class TestResolvePort:

    def test_enumerated_port(self):
        with patch('serial.tools.list_ports.comports', return_value=comports("COM1", "COM3")):
            assert resolve_port("COM3") == "COM3"

    def test_url_is_not_enumerated(self):
        with patch('serial.tools.list_ports.comports') as list_ports:
            assert resolve_port("loop://") == "loop://"
            list_ports.assert_not_called()

    def test_missing_port_lists_available(self):
        with patch('serial.tools.list_ports.comports', return_value=comports("COM1", "COM2")):
            with pytest.raises(PortNotFoundError) as info:
                resolve_port("COM99")
        assert info.value.port == "COM99"
        assert info.value.available_ports == ["COM1", "COM2"]
        assert "COM1" in str(info.value)
        assert "COM2" in str(info.value)

    def test_registered_path_is_available(self, tmp_path):
        device = tmp_path / "cul-stick"
        device.touch()
        SERIAL_PORTS.add(str(device))
        SERIAL_PORTS.add(str(tmp_path / "unplugged"))
        with patch('serial.tools.list_ports.comports', return_value=comports("COM1")):
            assert available_ports() == ["COM1", str(device)]
            assert resolve_port(str(device)) == str(device)

    def test_registered_port_not_listed_twice(self, tmp_path):
        device = tmp_path / "ttyACM0"
        device.touch()
        SERIAL_PORTS.add(str(device))
        with patch('serial.tools.list_ports.comports', return_value=comports(str(device))):
            assert available_ports() == [str(device)]


# =============================================================================
# OPEN
# =============================================================================

class TestOpenConnection:

    def test_open_applies_line_settings(self, patched_serial):
        port, factory = patched_serial
        handle = open_connection(CULConfig(port="COM3", baudrate=9600))

        factory.assert_called_once_with(
            "COM3",
            baudrate=9600,
            bytesize=serial.EIGHTBITS,
            stopbits=serial.STOPBITS_ONE,
            parity=serial.PARITY_NONE,
            write_timeout=2.0,
            exclusive=True,
            do_not_open=True,
        )
        assert port.is_open
        assert handle.port_name == "COM3"
        assert handle.output_stream is port
        assert handle.input_stream is port

    def test_port_registered_before_every_open(self, patched_serial):
        port, _ = patched_serial
        open_connection(CULConfig(port="COM3"))
        with pytest.raises(PortNotFoundError):
            open_connection(CULConfig(port="COM99"))
        assert SERIAL_PORTS.names() == ["COM3", "COM99"]

    def test_missing_port(self, patched_serial):
        _, factory = patched_serial
        with pytest.raises(PortNotFoundError) as info:
            open_connection(CULConfig(port="COM99"))
        message = str(info.value)
        assert message.startswith("Serial port 'COM99' could not be found. Available ports are:\n")
        for name in ("COM1", "COM2", "COM3"):
            assert f"{name}\n" in message
        factory.assert_not_called()

    def test_open_failure_is_communication_error(self, patched_serial):
        port, _ = patched_serial
        port.open_errors = [serial.SerialException("device reports readiness to read but returned no data")]
        with pytest.raises(CommunicationError) as info:
            open_connection(CULConfig(port="COM3"))
        assert not isinstance(info.value, PortNotFoundError)
        assert "returned no data" in str(info.value)
        assert isinstance(info.value.__cause__, serial.SerialException)

    def test_invalid_settings_are_communication_error(self, patched_serial):
        _, factory = patched_serial
        factory.side_effect = ValueError("Not a valid baudrate: 7")
        with pytest.raises(CommunicationError, match="Not a valid baudrate"):
            open_connection(CULConfig(port="COM3", baudrate=7))

    def test_busy_port_is_retried(self, patched_serial):
        port, _ = patched_serial
        port.open_errors = [serial.SerialException(11, "Could not exclusively lock port COM3: busy")]
        handle = open_connection(CULConfig(port="COM3", open_timeout=1.0))
        assert handle.is_open
        assert port.calls.count("open") == 2

    def test_busy_port_gives_up_after_timeout(self, patched_serial):
        port, _ = patched_serial
        port.open_errors = [serial.SerialException(11, "Could not exclusively lock port COM3: busy")] * 3
        with pytest.raises(CommunicationError, match="exclusively lock"):
            open_connection(CULConfig(port="COM3", open_timeout=0.0))
        assert port.calls.count("open") == 1

    def test_loop_url_round_trip(self):
        handle = open_connection(CULConfig(port="loop://", baudrate=9600))
        try:
            handle.write(b"YsA1200001ABCDEF\n")
            assert handle.input_stream.read(17) == b"YsA1200001ABCDEF\n"
        finally:
            handle.close()
        assert not handle.is_open


# =============================================================================
# CLOSE
# =============================================================================

class TestConnectionHandleClose:

    def test_close_order(self, open_handle, mock_serial):
        open_handle.close()
        assert mock_serial.calls == ["flush", "reset_input_buffer", "cancel_read", "close"]
        assert not open_handle.is_open

    def test_close_twice_is_noop(self, open_handle, mock_serial):
        open_handle.close()
        open_handle.close()
        assert mock_serial.calls.count("close") == 1

    def test_close_continues_after_failed_step(self, open_handle, mock_serial):
        mock_serial.flush_error = serial.SerialException("write failed: [Errno 5] Input/output error")
        open_handle.close()
        assert mock_serial.calls[-1] == "close"
        assert not mock_serial.is_open

    def test_close_swallows_close_failure(self):
        class BrokenPort(MockSerial):
            def close(self):
                raise OSError("already gone")

        handle = ConnectionHandle("COM3", BrokenPort())
        handle.close()
        assert not handle.is_open

    def test_port_without_cancel_read(self):
        class PlainPort:
            def __init__(self):
                self.calls = []
                self.is_open = True

            def flush(self):
                self.calls.append("flush")

            def reset_input_buffer(self):
                self.calls.append("reset_input_buffer")

            def close(self):
                self.calls.append("close")
                self.is_open = False

        port = PlainPort()
        handle = ConnectionHandle("COM3", port)
        handle.close()
        assert port.calls == ["flush", "reset_input_buffer", "close"]

    def test_write_after_close_raises(self, open_handle):
        open_handle.close()
        with pytest.raises(serial.SerialException):
            open_handle.write(b"YsA1200001ABCDEF\n")
