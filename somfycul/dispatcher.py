"""
Rate-Limited Command Dispatcher
===============================

Serializes writes to the CUL stick and keeps consecutive commands at least
MIN_COMMAND_SPACING_S apart. Commands arriving faster than that are lost
by the stick, so every line passes through a single gate:

    queue (FIFO) -> wait for spacing -> write + flush -> record completion

Only the queue and the spacing wait can be interrupted. A write that has
started runs to completion (bounded by the port's write timeout).

Example:
    >>> dispatcher = Dispatcher(handle)
    >>> dispatcher.send("YsA1200001ABCDEF")
    True
    >>>
    >>> # Give up on one command while it waits for its turn
    >>> token = threading.Event()
    >>> worker = threading.Thread(target=dispatcher.send, args=("YsA1400002ABCDEF", token))
    >>> worker.start()
    >>> dispatcher.cancel(token)
    >>> dispatcher.close()
"""

import logging
import threading
import time
from typing import Optional

import serial

from .commands import LINE_TERMINATOR, MIN_COMMAND_SPACING_S
from .connection import ConnectionHandle

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Single-owner write path over a ConnectionHandle.

    Spacing is measured with time.monotonic().

    Attributes:
        min_spacing: Minimum seconds between two completed writes
    """

    def __init__(self, handle: ConnectionHandle, min_spacing: float = MIN_COMMAND_SPACING_S):
        """
        Args:
            handle: Open connection to write to
            min_spacing: Minimum seconds between two completed writes
        """
        self.min_spacing = min_spacing
        self._handle = handle

        self._cond = threading.Condition(threading.Lock())
        self._next_ticket = 0
        self._now_serving = 0
        self._abandoned = set()
        self._generation = 0
        self._closed = False
        self._close_done = threading.Event()
        self._last_send: Optional[float] = None

    @property
    def port_name(self) -> str:
        return self._handle.port_name

    @property
    def last_send(self) -> Optional[float]:
        """Completion time of the last successful write, None if never."""
        with self._cond:
            return self._last_send

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    # =========================================================================
    # Gate
    # =========================================================================

    def _cancelled(self, generation: int, cancel: Optional[threading.Event]) -> bool:
        return (
            self._closed
            or generation != self._generation
            or (cancel is not None and cancel.is_set())
        )

    def _acquire(self, cancel: Optional[threading.Event]) -> Optional[int]:
        """
        Queue for the gate. Returns the generation the caller entered with,
        or None if it was cancelled or closed out before its turn.
        """
        with self._cond:
            generation = self._generation
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._now_serving:
                if self._cancelled(generation, cancel):
                    self._abandoned.add(ticket)
                    return None
                self._cond.wait()
            if self._cancelled(generation, cancel):
                self._release_locked()
                return None
            return generation

    def _release_locked(self) -> None:
        self._now_serving += 1
        while self._now_serving in self._abandoned:
            self._abandoned.discard(self._now_serving)
            self._now_serving += 1
        self._cond.notify_all()

    def _release(self) -> None:
        with self._cond:
            self._release_locked()

    def _wait_for_spacing(self, generation: int, cancel: Optional[threading.Event]) -> bool:
        """
        Block until min_spacing has passed since the last write.

        Returns:
            False if cancelled or closed while waiting
        """
        with self._cond:
            if self._last_send is None:
                return True
            earliest = self._last_send + self.min_spacing
            while True:
                if self._cancelled(generation, cancel):
                    return False
                remaining = earliest - time.monotonic()
                if remaining <= 0:
                    return True
                self._cond.wait(remaining)

    # =========================================================================
    # Public API
    # =========================================================================

    def send(self, line: str, cancel: Optional[threading.Event] = None) -> bool:
        """
        Write one line (newline appended) to the stick.

        Concurrent callers are served in arrival order.

        Args:
            line: Line to write, without terminator
            cancel: Optional token. Pass it to cancel() to abandon this
                    call while it is queued or waiting for spacing.

        Returns:
            True if the line was written, False if the write failed or the
            call was cancelled before writing
        """
        generation = self._acquire(cancel)
        if generation is None:
            logger.debug(f"Dropped '{line}' for {self.port_name}: cancelled while queued")
            return False
        try:
            if not self._wait_for_spacing(generation, cancel):
                logger.debug(f"Dropped '{line}' for {self.port_name}: cancelled while throttled")
                return False

            logger.debug(f"Trying to write '{line}' to serial port {self.port_name}")
            try:
                self._handle.write((line + LINE_TERMINATOR).encode("ascii"))
            except (serial.SerialException, OSError, UnicodeEncodeError) as exc:
                logger.error(f"Error writing '{line}' to serial port {self.port_name}: {exc}")
                return False

            with self._cond:
                self._last_send = time.monotonic()
            return True
        finally:
            self._release()

    def cancel(self, token: threading.Event) -> None:
        """
        Abandon the send that was given ``token``.

        Has no effect once that send has started writing.
        """
        with self._cond:
            token.set()
            self._cond.notify_all()

    def cancel_pending(self) -> None:
        """
        Cancel every send that is queued or waiting for spacing.

        A write already in progress is not affected, and sends started
        afterwards proceed normally.
        """
        with self._cond:
            self._generation += 1
            self._cond.notify_all()

    def close(self) -> None:
        """
        Stop accepting sends, wait for an in-flight write, close the handle.

        Safe to call more than once. Every caller returns only after the
        handle is closed.
        """
        with self._cond:
            if self._closed:
                first = False
            else:
                first = True
                self._closed = True
                self._generation += 1
                self._cond.notify_all()
        if not first:
            self._close_done.wait()
            return

        # Queue behind whatever holds the gate so the handle is never
        # closed under a running write.
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._now_serving:
                self._cond.wait()
        try:
            self._handle.close()
        finally:
            self._release()
            self._close_done.set()
        logger.debug(f"Dispatcher for {self.port_name} closed")
