"""Debounced keyword input on top of a cancellable timer abstraction."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.5


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioTimerScheduler:
    """Timers on the running asyncio loop (loop.call_later)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def schedule(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class SearchDebouncer:
    """Turns raw keystrokes into settled keywords.

    Every keystroke cancels the pending timer and starts a new window; only
    a value that survives a whole window is handed to ``on_settle``, and
    only if it differs from the last settled value.
    """

    def __init__(
        self,
        scheduler: TimerScheduler,
        on_settle: Callable[[str], None],
        delay: float = DEFAULT_DELAY_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._on_settle = on_settle
        self.delay = delay
        self._handle: TimerHandle | None = None
        self._raw = ""
        self._applied = ""

    @property
    def raw(self) -> str:
        return self._raw

    @property
    def applied(self) -> str:
        return self._applied

    @property
    def is_searching(self) -> bool:
        return self._handle is not None

    def feed(self, text: str) -> None:
        self.cancel()
        self._raw = text
        self._handle = self._scheduler.schedule(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def reset(self, value: str = "") -> None:
        """Drop any pending keystrokes and treat ``value`` as already applied."""
        self.cancel()
        self._raw = value
        self._applied = value

    def _fire(self) -> None:
        self._handle = None
        keyword = self._raw.strip()
        if keyword == self._applied:
            return
        self._applied = keyword
        logger.debug("Search keyword settled: %r", keyword)
        self._on_settle(keyword)
