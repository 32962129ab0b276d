from typing import Callable
import functools
import logging
import sys

from .errors import SomfyCULError


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def log_exceptions(func: Callable) -> Callable:
    """
    Decorator for command-line entry points.

    Driver errors (SomfyCULError) are logged with traceback, printed as a
    one-line ERROR message and turned into exit code 1. Anything else is
    logged and re-raised.

    Example:
    >>> from somfycul.utilities import log_exceptions
    >>>
    >>> @log_exceptions
    ... def run_send_cli():
    ...     ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        try:
            return func(*args, **kwargs)
        except SomfyCULError as e:
            logger.debug(f"{func.__name__} failed", exc_info=True)
            print(f"ERROR: {e}")
            sys.exit(1)
        except Exception as e:
            logger.error(
                f"Exception in {func.__name__}: {e}",
                exc_info=True
            )
            raise

    return wrapper


def configure_logging(verbose: bool = False) -> None:
    """Console logging for the command-line tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )
