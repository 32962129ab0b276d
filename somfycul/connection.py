"""
Serial Connection Management for the CUL Stick
==============================================

Owns the serial port: resolving the configured name, opening it
exclusively with the CUL line settings (8N1) and tearing it down again.

Example:
    >>> from somfycul.connection import open_connection
    >>> from somfycul.data_types import CULConfig
    >>>
    >>> handle = open_connection(CULConfig(port='/dev/ttyACM0'))
    >>> handle.write(b'YsA1200001ABCDEF\\n')
    >>> handle.close()
"""

import logging
import os
import threading
import time
from typing import List, Optional

import serial
from serial.tools import list_ports

from .data_types import CULConfig
from .errors import CommunicationError, PortNotFoundError

logger = logging.getLogger(__name__)

OPEN_RETRY_INTERVAL_S = 0.1
URL_SEPARATOR = "://"


class PortRegistry:
    """
    Process-wide allow-list of serial port names.

    Names registered here are treated as serial ports even when the
    platform enumeration does not report them (e.g. udev symlinks such as
    /dev/serial/by-id/...). Shared by every connection in the process.
    """

    def __init__(self):
        self._names = set()
        self._lock = threading.Lock()

    def add(self, name: str) -> bool:
        """
        Register a port name.

        Returns:
            True if the name was not registered before
        """
        with self._lock:
            if name in self._names:
                return False
            self._names.add(name)
        logger.debug(f"Added {name} to the serial port allow-list")
        return True

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._names)

    def clear(self) -> None:
        with self._lock:
            self._names.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._names


SERIAL_PORTS = PortRegistry()


def available_ports() -> List[str]:
    """
    List the serial ports visible to pyserial.

    Enumerated devices come first, followed by registered names that exist
    on the filesystem but were not enumerated.
    """
    ports = [info.device for info in list_ports.comports()]
    for name in SERIAL_PORTS.names():
        if name not in ports and os.path.exists(name):
            ports.append(name)
    return ports


def resolve_port(name: str) -> str:
    """
    Resolve a port name to something pyserial can open.

    pyserial URLs (loop://, socket://, rfc2217://, ...) resolve as they are.

    Raises:
        PortNotFoundError: If the port is not available
    """
    if URL_SEPARATOR in name:
        return name
    ports = available_ports()
    if name in ports:
        return name
    raise PortNotFoundError(name, ports)


def _is_port_busy(exc: Exception) -> bool:
    text = str(exc)
    return "exclusively lock" in text or "Access is denied" in text


class ConnectionHandle:
    """
    Exclusive ownership of an open CUL serial port.

    The pyserial port object provides both byte streams: ``output_stream``
    is written by the dispatcher, ``input_stream`` is left untouched since
    nothing reads from the stick.
    """

    def __init__(self, port_name: str, port: serial.SerialBase):
        self.port_name = port_name
        self._port: Optional[serial.SerialBase] = port
        self._lock = threading.Lock()

    @property
    def output_stream(self) -> Optional[serial.SerialBase]:
        return self._port

    @property
    def input_stream(self) -> Optional[serial.SerialBase]:
        return self._port

    @property
    def is_open(self) -> bool:
        port = self._port
        return port is not None and port.is_open

    def write(self, data: bytes) -> None:
        """
        Write bytes and flush them to the device.

        Raises:
            serial.SerialException: If the handle is closed or the write fails
        """
        port = self._port
        if port is None:
            raise serial.SerialException(f"Serial port {self.port_name} is closed")
        port.write(data)
        port.flush()

    def close(self) -> None:
        """
        Release the port. Never raises; calling it again is a no-op.

        Every step is attempted even if an earlier one fails.
        """
        with self._lock:
            port, self._port = self._port, None
        if port is None:
            return

        self._attempt("flush output", port.flush)
        self._attempt("discard input", port.reset_input_buffer)
        if hasattr(port, "cancel_read"):
            self._attempt("release readers", port.cancel_read)
        self._attempt("close port", port.close)
        logger.debug(f"Closed serial port {self.port_name}")

    def _attempt(self, step: str, action) -> None:
        try:
            action()
        except Exception as exc:
            logger.debug(f"Ignoring failure to {step} on {self.port_name}: {exc}")

    def __repr__(self) -> str:
        return f"ConnectionHandle({self.port_name!r}, open={self.is_open})"


def open_connection(config: CULConfig) -> ConnectionHandle:
    """
    Open the configured port exclusively with 8 data bits, 1 stop bit and
    no parity.

    The port name is added to SERIAL_PORTS before it is resolved. While
    another owner holds the port lock, the open is retried until
    ``config.open_timeout`` has elapsed.

    Raises:
        PortNotFoundError: If the port does not exist
        CommunicationError: For any other failure while opening
    """
    SERIAL_PORTS.add(config.port)
    name = resolve_port(config.port)

    deadline = time.monotonic() + config.open_timeout
    while True:
        try:
            port = serial.serial_for_url(
                name,
                baudrate=config.baudrate,
                bytesize=serial.EIGHTBITS,
                stopbits=serial.STOPBITS_ONE,
                parity=serial.PARITY_NONE,
                write_timeout=config.write_timeout,
                exclusive=True,
                do_not_open=True,
            )
            port.open()
            break
        except (serial.SerialException, OSError, ValueError) as exc:
            if _is_port_busy(exc) and time.monotonic() < deadline:
                time.sleep(OPEN_RETRY_INTERVAL_S)
                continue
            raise CommunicationError(str(exc)) from exc

    logger.debug(f"Opened {name} at {config.baudrate} baud (8N1)")
    return ConnectionHandle(name, port)
