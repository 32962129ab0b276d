"""
CUL Stick Controller
====================

High-level interface for sending Somfy RTS commands through a CUL stick.
Connects the configuration, the serial connection and the dispatcher, and
reports every lifecycle transition to an optional status callback.

Example:
    >>> from somfycul import CULStick, SomfyCommand
    >>>
    >>> # Using context manager (recommended)
    >>> with CULStick({'port': '/dev/ttyACM0', 'baudrate': 9600}) as cul:
    ...     cul.execute_command('Living room', SomfyCommand.UP, '0001', 'ABCDEF')
    >>>
    >>> # Manual lifecycle with status reporting
    >>> cul = CULStick(config, status_callback=print)
    >>> if cul.initialize():
    ...     cul.execute_command('Bedroom', SomfyCommand.DOWN, '0002', 'ABCDEF')
    >>> cul.dispose()

Rolling codes are not tracked here. Each command carries the code the
caller supplies, and the caller is responsible for advancing it.
"""

import logging
import threading
from typing import Any, Callable, Mapping, Optional, Union

from .commands import MIN_COMMAND_SPACING_S, encode_command
from .connection import open_connection
from .data_types import CULConfig, ConnectionState, ThingStatusDetail
from .dispatcher import Dispatcher
from .errors import ConfigurationError, PortNotFoundError

logger = logging.getLogger(__name__)

StatusCallback = Callable[[ConnectionState], None]


class CULStick:
    """
    Bridge between a host application and a CUL stick.

    Attributes:
        MIN_SPACING: Default minimum seconds between two commands
    """

    MIN_SPACING = MIN_COMMAND_SPACING_S

    def __init__(
        self,
        config: Union[CULConfig, Mapping[str, Any]],
        status_callback: Optional[StatusCallback] = None,
        min_spacing: float = MIN_SPACING,
    ):
        """
        Initialize the controller. No port is opened until initialize().

        Args:
            config: CULConfig or a host configuration mapping with 'port'
                    and 'baudrate'
            status_callback: Called with a ConnectionState on every transition
            min_spacing: Minimum seconds between two commands
        """
        self._raw_config = config
        self.config: Optional[CULConfig] = config if isinstance(config, CULConfig) else None
        self.status_callback = status_callback
        self.min_spacing = min_spacing

        self._state = ConnectionState()
        self._dispatcher: Optional[Dispatcher] = None
        self._lock = threading.Lock()

    def __enter__(self) -> 'CULStick':
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.dispose()

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    @property
    def port_name(self) -> Optional[str]:
        return self.config.port if self.config else None

    def _update_status(self, state: ConnectionState) -> None:
        self._state = state
        if self.status_callback is None:
            return
        try:
            self.status_callback(state)
        except Exception:
            logger.exception(f"Status callback failed for state {state}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self) -> bool:
        """
        Validate the configuration and open the stick.

        Returns:
            True if the stick is ONLINE afterwards
        """
        logger.debug("Start initializing!")
        self.dispose()

        try:
            if self.config is None:
                self.config = CULConfig.from_dict(self._raw_config)
        except ConfigurationError as exc:
            self._update_status(ConnectionState.offline(
                ThingStatusDetail.CONFIGURATION_ERROR, str(exc)))
            return False

        logger.info(f"got port: {self.config.port}")
        try:
            handle = open_connection(self.config)
        except PortNotFoundError as exc:
            logger.warning(str(exc))
            self._update_status(ConnectionState.offline(
                ThingStatusDetail.COMMUNICATION_ERROR, str(exc)))
            return False
        except Exception as exc:
            logger.error("An error occurred while initializing the CUL connection.", exc_info=True)
            self._update_status(ConnectionState.offline(
                ThingStatusDetail.COMMUNICATION_ERROR,
                f"An error occurred while initializing the CUL connection: {exc}"))
            return False

        with self._lock:
            self._dispatcher = Dispatcher(handle, min_spacing=self.min_spacing)
        self._update_status(ConnectionState.online())
        logger.debug("Finished initializing!")
        return True

    def dispose(self) -> None:
        """
        Close the connection. Waits for an in-flight command first.

        The stick goes back to UNINITIALIZED and can be initialized again.
        """
        with self._lock:
            dispatcher, self._dispatcher = self._dispatcher, None
        if dispatcher is None:
            return
        dispatcher.close()
        self._update_status(ConnectionState())

    def cancel_pending(self) -> None:
        """Drop every command still waiting for its turn."""
        dispatcher = self._dispatcher
        if dispatcher is not None:
            dispatcher.cancel_pending()

    # =========================================================================
    # Commands
    # =========================================================================

    def execute_command(
        self,
        target_label: str,
        action: str,
        rolling_code: str,
        address: str,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """
        Send a Somfy RTS command to a device.

        Args:
            target_label: Name of the receiving device (for logging)
            action: Action key, see SomfyCommand
            rolling_code: Rolling code to embed, supplied by the caller
            address: Address of the receiving device
            cancel: Optional token; pass it to cancel() to abandon the
                    command before it is written

        Returns:
            True if the command was written to the stick
        """
        cul_command = encode_command(action, rolling_code, address)
        logger.info(f"Send message {cul_command} for thing {target_label}")
        return self.write_string(cul_command, cancel)

    def write_string(self, msg: str, cancel: Optional[threading.Event] = None) -> bool:
        """
        Send a raw line to the stick (newline appended).

        Args:
            msg: Line to send
            cancel: Optional token, see cancel()

        Returns:
            True if the line was written, False if the stick is not online,
            the write failed or the call was cancelled
        """
        dispatcher = self._dispatcher
        if dispatcher is None or not self.is_online:
            logger.warning(f"Cannot send '{msg}': CUL stick is {self._state.status}")
            return False
        return dispatcher.send(msg, cancel)

    def cancel(self, token: threading.Event) -> None:
        """Abandon the command that was sent with ``token`` if it has not been written yet."""
        dispatcher = self._dispatcher
        if dispatcher is not None:
            dispatcher.cancel(token)
        else:
            token.set()
