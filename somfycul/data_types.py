"""
Data Types for SomfyCUL
=======================

Configuration of a CUL stick and the connection state reported to the
host. These are plain dataclasses with no dependency on a home
automation framework.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .errors import ConfigurationError


DEFAULT_BAUDRATE = 9600
DEFAULT_WRITE_TIMEOUT_S = 2.0
DEFAULT_OPEN_TIMEOUT_S = 2.0


@dataclass(frozen=True)
class CULConfig:
    """
    Configuration of a CUL stick.

    Attributes
    ----------
    port : str
        Serial port or pyserial URL (e.g. '/dev/ttyACM0', 'COM3', 'loop://')
    baudrate : int
        Serial baudrate
    write_timeout : float
        Seconds a single write may block before it is reported as failed
    open_timeout : float
        Seconds to wait for the port while another process holds its lock
    """
    port: str
    baudrate: int = DEFAULT_BAUDRATE
    write_timeout: float = DEFAULT_WRITE_TIMEOUT_S
    open_timeout: float = DEFAULT_OPEN_TIMEOUT_S

    def __post_init__(self):
        if not self.port or not str(self.port).strip():
            raise ConfigurationError("Port must be set!")
        if isinstance(self.baudrate, bool) or not isinstance(self.baudrate, int) or self.baudrate <= 0:
            raise ConfigurationError(f"Baudrate must be a positive integer, got {self.baudrate!r}")
        if self.write_timeout is not None and self.write_timeout < 0:
            raise ConfigurationError(f"Write timeout must not be negative, got {self.write_timeout!r}")
        if self.open_timeout < 0:
            raise ConfigurationError(f"Open timeout must not be negative, got {self.open_timeout!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CULConfig':
        """
        Build a config from a host configuration mapping.

        Unknown keys are ignored. Numeric values may be given as strings.

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        port = data.get("port")
        if port is None:
            raise ConfigurationError("Port must be set!")
        try:
            return cls(
                port=str(port).strip(),
                baudrate=int(data.get("baudrate", DEFAULT_BAUDRATE)),
                write_timeout=float(data.get("write_timeout", DEFAULT_WRITE_TIMEOUT_S)),
                open_timeout=float(data.get("open_timeout", DEFAULT_OPEN_TIMEOUT_S)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid CUL configuration: {exc}") from exc


class ThingStatus:
    """Lifecycle status reported to the host."""
    UNINITIALIZED = "UNINITIALIZED"
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class ThingStatusDetail:
    """Reason attached to an OFFLINE status."""
    NONE = "NONE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    COMMUNICATION_ERROR = "COMMUNICATION_ERROR"


@dataclass(frozen=True)
class ConnectionState:
    """
    Connection state of a CUL stick.

    Attributes:
        status: One of ThingStatus
        detail: One of ThingStatusDetail
        message: Human readable description (OFFLINE only)
    """
    status: str = ThingStatus.UNINITIALIZED
    detail: str = ThingStatusDetail.NONE
    message: Optional[str] = None

    @classmethod
    def online(cls) -> 'ConnectionState':
        return cls(status=ThingStatus.ONLINE)

    @classmethod
    def offline(cls, detail: str, message: Optional[str] = None) -> 'ConnectionState':
        return cls(status=ThingStatus.OFFLINE, detail=detail, message=message)

    @property
    def is_online(self) -> bool:
        return self.status == ThingStatus.ONLINE

    def __str__(self) -> str:
        text = self.status
        if self.detail != ThingStatusDetail.NONE:
            text += f" ({self.detail})"
        if self.message:
            text += f": {self.message}"
        return text
