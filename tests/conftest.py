"""
Shared fixtures and mocks for the SomfyCUL test suite.

Run with:
    pytest tests -v
"""

import threading
import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from somfycul.connection import SERIAL_PORTS, ConnectionHandle


class MockSerial:
    """Mock serial port for testing without hardware."""

    def __init__(self, write_delay: float = 0.0):
        self.written = []          # (completion time, bytes)
        self.calls = []
        self.is_open = False
        self.write_delay = write_delay
        self.write_error = None
        self.flush_error = None
        self.open_errors = []
        self.closed_at = None
        self._lock = threading.Lock()

    def open(self):
        self.calls.append("open")
        if self.open_errors:
            raise self.open_errors.pop(0)
        self.is_open = True

    def write(self, data: bytes) -> int:
        self.calls.append("write")
        if self.write_error is not None:
            raise self.write_error
        if self.write_delay:
            time.sleep(self.write_delay)
        with self._lock:
            self.written.append((time.monotonic(), data))
        return len(data)

    def flush(self):
        self.calls.append("flush")
        if self.flush_error is not None:
            raise self.flush_error

    def reset_input_buffer(self):
        self.calls.append("reset_input_buffer")

    def cancel_read(self):
        self.calls.append("cancel_read")

    def close(self):
        self.calls.append("close")
        self.is_open = False
        self.closed_at = time.monotonic()

    @property
    def lines(self) -> list:
        """Lines written so far, without terminator."""
        with self._lock:
            return [data.decode().rstrip("\n") for _, data in self.written]

    @property
    def write_times(self) -> list:
        with self._lock:
            return [stamp for stamp, _ in self.written]


def comports(*names):
    """Fake result of serial.tools.list_ports.comports()."""
    return [SimpleNamespace(device=name) for name in names]


@pytest.fixture(autouse=True)
def clean_registry():
    """Each test starts with an empty port allow-list."""
    SERIAL_PORTS.clear()
    yield
    SERIAL_PORTS.clear()


@pytest.fixture
def mock_serial():
    """Create a mock serial port."""
    return MockSerial()


@pytest.fixture
def open_handle(mock_serial):
    """ConnectionHandle around an already-open mock port."""
    mock_serial.is_open = True
    return ConnectionHandle("COM3", mock_serial)


@pytest.fixture
def patched_serial(mock_serial):
    """pyserial patched to enumerate COM1..COM3 and open the mock port."""
    with patch('serial.serial_for_url') as factory, \
            patch('serial.tools.list_ports.comports') as list_ports:
        factory.return_value = mock_serial
        list_ports.return_value = comports("COM1", "COM2", "COM3")
        yield mock_serial, factory
