"""
Command Protocol for Somfy RTS via a CUL stick
==============================================

The CUL firmware accepts Somfy RTS frames as single ASCII lines.

Wire Format (Host → CUL)
------------------------
    YsA1<action>0<rollingCode><address>\\n

    Ys           - Somfy RTS send command
    A1           - encryption key (fixed)
    <action>     - one hex digit, see SomfyCommand
    0            - checksum placeholder (computed by the firmware)
    <rollingCode>- anti-replay counter, managed by the caller
    <address>    - actuator address

Example:
    YsA1200001ABCDEF   - UP, rolling code 0001, address ABCDEF

Data sent back by the stick is not interpreted.
"""


class SomfyCommand:
    """Action keys (RTS control nibble)."""
    MY = "1"             # Stop / favourite position
    UP = "2"
    MY_UP = "3"
    DOWN = "4"
    MY_DOWN = "5"
    UP_DOWN = "6"
    PROG = "8"           # Pair / unpair remote

    _ALIASES = {
        "STOP": "MY",
        "OPEN": "UP",
        "CLOSE": "DOWN",
        "PROGRAM": "PROG",
    }

    @classmethod
    def from_name(cls, name: str) -> str:
        """
        Map an action name to its key.

        Accepts the attribute names above in any case, a few aliases
        ("stop", "open", "close", "program") and raw keys ("2").

        Raises:
            ValueError: If the name is unknown
        """
        key = name.strip().upper().replace("-", "_")
        key = cls._ALIASES.get(key, key)
        if key in cls.names():
            return getattr(cls, key)
        if key in cls.names().values():
            return key
        raise ValueError(f"Unknown Somfy action: {name!r}")

    @classmethod
    def names(cls) -> dict:
        """All action names mapped to their keys."""
        return {
            attr: value for attr, value in vars(cls).items()
            if attr.isupper() and not attr.startswith("_")
        }


# Protocol fragments
SEND_PREFIX = "Ys"
ENCRYPTION_KEY = "A1"
CHECKSUM_PLACEHOLDER = "0"
LINE_TERMINATOR = "\n"

# The CUL drops frames that arrive closer together than this
MIN_COMMAND_SPACING_S = 0.1


def encode_command(action: str, rolling_code: str, address: str) -> str:
    """
    Build the CUL line for a Somfy RTS command (without terminator).

    No validation is done; the caller is responsible for the format of
    the rolling code and the address.
    """
    return SEND_PREFIX + ENCRYPTION_KEY + action + CHECKSUM_PLACEHOLDER + rolling_code + address
