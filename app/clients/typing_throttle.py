"""Outbound typing signal throttle."""

import asyncio
import inspect
import time
from typing import Any, Callable, Optional

from app.logging_config import get_logger

logger = get_logger(__name__)


class TypingThrottle:
    """Turns keystrokes into sparse ``typing`` signals.

    ``input_changed`` sends ``typing=True`` at most once per ``interval``
    seconds while input keeps changing; after ``idle`` seconds without input
    ``typing=False`` is sent. ``stop`` sends ``typing=False`` straight away if
    a typing signal is outstanding.

    ``send`` receives the boolean and may return an awaitable.
    """

    def __init__(
        self,
        send: Callable[[bool], Any],
        interval: float = 2.0,
        idle: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._send = send
        self.interval = interval
        self.idle = idle
        self._clock = clock
        self._typing = False
        self._last_sent: Optional[float] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_typing(self) -> bool:
        return self._typing

    def input_changed(self) -> None:
        now = self._clock()
        if (
            not self._typing
            or self._last_sent is None
            or now - self._last_sent >= self.interval
        ):
            self._last_sent = now
            self._emit(True)

        self._cancel_idle()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.idle, self._on_idle)

    def stop(self) -> None:
        self._cancel_idle()
        if self._typing:
            self._emit(False)

    def close(self) -> None:
        """Drop the pending timer without signalling."""
        self._cancel_idle()
        self._typing = False

    def _on_idle(self) -> None:
        self._idle_handle = None
        if self._typing:
            self._emit(False)

    def _cancel_idle(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _emit(self, is_typing: bool) -> None:
        self._typing = is_typing
        if not is_typing:
            self._last_sent = None
        result = self._send(is_typing)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(_log_failure)


def _log_failure(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("Typing signal failed: %s", error)
