"""
Cancellable fixed-interval loop for the polling monitors.
"""

import signal
import threading
from typing import Iterator, Optional


class Ticker:
    """
    Yields tick numbers ``0, 1, 2, ...`` with ``interval`` seconds between them.

    Use as:
        with Ticker(5) as ticker:
            for tick in ticker:
                check()

    Inside the ``with`` block SIGINT and SIGTERM call ``stop()`` instead of
    raising, so the loop ends after the current check and the caller can
    print a final line.
    """

    def __init__(self, interval: float, max_ticks: Optional[int] = None):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self.max_ticks = max_ticks
        self.ticks = 0
        self._stop = threading.Event()
        self._previous_handlers = {}

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self, *_args) -> None:
        self._stop.set()

    def __iter__(self) -> Iterator[int]:
        while not self._stop.is_set():
            if self.max_ticks is not None and self.ticks >= self.max_ticks:
                return
            yield self.ticks
            self.ticks += 1
            if self.max_ticks is not None and self.ticks >= self.max_ticks:
                return
            if self._stop.wait(self.interval):
                return

    def __enter__(self) -> "Ticker":
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                self._previous_handlers[signum] = signal.signal(signum, self.stop)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()
        self.stop()
