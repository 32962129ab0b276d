"""Domain-specific errors for somfycul."""

from typing import List, Optional


class SomfyCULError(Exception):
    """Base error for somfycul."""


class ConfigurationError(SomfyCULError):
    """Raised when the CUL configuration is missing or invalid."""


class CommunicationError(SomfyCULError):
    """Raised when the serial port cannot be opened or configured."""


class PortNotFoundError(CommunicationError):
    """Raised when the configured port is not among the available ports."""

    def __init__(self, port: str, available_ports: Optional[List[str]] = None):
        self.port = port
        self.available_ports = list(available_ports or [])
        listing = "".join(f"{name}\n" for name in self.available_ports)
        super().__init__(
            f"Serial port '{port}' could not be found. Available ports are:\n{listing}"
        )
