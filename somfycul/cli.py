"""
Command-Line Tools
==================

somfycul-send
    Send one Somfy RTS command through a CUL stick.

somfycul-ports
    List the serial ports a CUL stick could be attached to.

CLI Usage
---------
    somfycul-send --port /dev/ttyACM0 --action up --rolling-code 0001 --address ABCDEF
    somfycul-send --port loop:// --action 4 --rolling-code 0002 --address ABCDEF --repeat 3 -v
    somfycul-ports
"""

import argparse
import sys
from typing import List, Optional

from .commands import SomfyCommand, encode_command
from .connection import available_ports
from .cul import CULStick
from .data_types import DEFAULT_BAUDRATE, DEFAULT_WRITE_TIMEOUT_S, CULConfig
from .utilities import configure_logging, log_exceptions


def _action(value: str) -> str:
    try:
        return SomfyCommand.from_name(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_send_parser() -> argparse.ArgumentParser:
    actions = ", ".join(name.lower() for name in SomfyCommand.names())
    parser = argparse.ArgumentParser(
        prog="somfycul-send",
        description="Send a Somfy RTS command through a CUL stick",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Actions: {actions} (or stop/open/close, or a raw 1-digit key)

Example:
    somfycul-send --port /dev/ttyACM0 --action up --rolling-code 0001 --address ABCDEF

The rolling code is sent as given. Increase it yourself for every command.
        """
    )
    parser.add_argument('--port', '-p', required=True,
                        help='Serial port or pyserial URL (e.g. /dev/ttyACM0, COM3, loop://)')
    parser.add_argument('--baudrate', '-b', type=int, default=DEFAULT_BAUDRATE,
                        help=f'Baudrate (default: {DEFAULT_BAUDRATE})')
    parser.add_argument('--write-timeout', type=float, default=DEFAULT_WRITE_TIMEOUT_S,
                        help=f'Write timeout in seconds (default: {DEFAULT_WRITE_TIMEOUT_S})')
    parser.add_argument('--action', '-a', type=_action, required=True,
                        help='Action name or key')
    parser.add_argument('--rolling-code', '-r', required=True,
                        help='Rolling code to embed in the command')
    parser.add_argument('--address', '-d', required=True,
                        help='Address of the receiving device')
    parser.add_argument('--label', default='cli',
                        help='Device label used in log output (default: cli)')
    parser.add_argument('--repeat', type=int, default=1,
                        help='Send the command this many times (default: 1)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')
    return parser


@log_exceptions
def run_send_cli(argv: Optional[List[str]] = None) -> None:
    """
    Command-line interface for sending a single command.

    Entry point for `somfycul-send` command. Exits with 0 when every write
    succeeded and 1 otherwise.
    """
    args = build_send_parser().parse_args(argv)
    configure_logging(args.verbose)

    config = CULConfig(port=args.port, baudrate=args.baudrate, write_timeout=args.write_timeout)
    cul = CULStick(config)
    if not cul.initialize():
        print(f"ERROR: Could not open CUL stick: {cul.state.message}")
        sys.exit(1)

    line = encode_command(args.action, args.rolling_code, args.address)
    print(f"✓ Connected to {args.port}")
    sent = 0
    try:
        for _ in range(max(1, args.repeat)):
            if cul.execute_command(args.label, args.action, args.rolling_code, args.address):
                sent += 1
                print(f"  sent {line}")
            else:
                print(f"  FAILED {line}")
    except KeyboardInterrupt:
        print("\nCancelled.")
    finally:
        cul.dispose()

    sys.exit(0 if sent == max(1, args.repeat) else 1)


@log_exceptions
def run_ports_cli(argv: Optional[List[str]] = None) -> None:
    """
    List available serial ports, one per line.

    Entry point for `somfycul-ports` command.
    """
    parser = argparse.ArgumentParser(
        prog="somfycul-ports",
        description="List serial ports a CUL stick could be attached to",
    )
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    ports = available_ports()
    if not ports:
        print("No serial ports found.")
        sys.exit(1)
    for name in ports:
        print(name)


if __name__ == '__main__':
    run_send_cli()
