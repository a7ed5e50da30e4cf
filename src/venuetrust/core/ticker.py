"""
Periodic tick scheduling.

The engine needs a once-per-second tick to advance dwell accounting. `IntervalTicker`
runs a daemon thread that fires on a fixed monotonic grid (`start + n * interval`)
rather than sleeping `interval` after each callback, so slow callbacks do not make
ticks drift and the n-th tick never fires before `n * interval` has elapsed.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Ticker(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TickerFactory = Callable[[float, Callable[[], None]], Ticker]


class IntervalTicker:
    """Call `callback` every `interval_seconds` on a background thread until cancelled."""

    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], None],
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "venuetrust-ticker",
    ):
        if float(interval_seconds) <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._interval = float(interval_seconds)
        self._callback = callback
        self._clock = clock
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        # Cancelling from inside the callback must not join the current thread.
        if self._started and threading.current_thread() is not self._thread:
            self._thread.join(timeout=self._interval * 2)

    def _run(self) -> None:
        origin = self._clock()
        n = 0
        while not self._stop.is_set():
            n += 1
            deadline = origin + n * self._interval
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                if self._stop.wait(remaining):
                    return
            try:
                self._callback()
            except Exception:
                # A failing tick must not kill the scheduler; the next tick retries.
                logger.exception("Tick callback failed")


def interval_ticker_factory(interval_seconds: float, callback: Callable[[], None]) -> Ticker:
    return IntervalTicker(interval_seconds, callback)
