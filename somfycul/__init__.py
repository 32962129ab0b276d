"""
SomfyCUL - Somfy RTS over a CUL stick
=====================================

A Python library for controlling Somfy RTS roller shutters through a
serial-attached CUL radio gateway.

Example:
    >>> from somfycul import CULStick, SomfyCommand
    >>>
    >>> with CULStick({'port': '/dev/ttyACM0'}) as cul:
    ...     cul.execute_command('Kitchen', SomfyCommand.UP, '0001', 'ABCDEF')
"""

from .cul import CULStick
from .commands import (
    SomfyCommand,
    encode_command,
    MIN_COMMAND_SPACING_S,
)
from .connection import (
    ConnectionHandle,
    PortRegistry,
    SERIAL_PORTS,
    available_ports,
    open_connection,
    resolve_port,
)
from .data_types import (
    CULConfig,
    ConnectionState,
    ThingStatus,
    ThingStatusDetail,
)
from .dispatcher import Dispatcher
from .errors import (
    SomfyCULError,
    ConfigurationError,
    CommunicationError,
    PortNotFoundError,
)

__version__ = "1.0.0"
__all__ = [
    "CULStick",
    "SomfyCommand",
    "encode_command",
    "MIN_COMMAND_SPACING_S",
    "ConnectionHandle",
    "PortRegistry",
    "SERIAL_PORTS",
    "available_ports",
    "open_connection",
    "resolve_port",
    "CULConfig",
    "ConnectionState",
    "ThingStatus",
    "ThingStatusDetail",
    "Dispatcher",
    "SomfyCULError",
    "ConfigurationError",
    "CommunicationError",
    "PortNotFoundError",
]
