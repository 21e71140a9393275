"""Periodic ticker used by the timer trigger policy."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Ticker:
    """Call ``callback`` every ``interval`` seconds on a daemon thread.

    The countdown for the next tick only starts after the callback returns,
    so a slow callback never overlaps the following tick.
    """

    def __init__(self, interval: float, callback: Callable[[], None], *, name: str = "ticker") -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self._callback = callback
        self._name = name
        self._cond = threading.Condition()
        self._thread: threading.Thread | None = None
        self._stopped = False
        self._postponed = False

    @property
    def running(self) -> bool:
        with self._cond:
            return self._thread is not None and not self._stopped

    def start(self) -> None:
        with self._cond:
            if self._thread is not None or self._stopped:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def postpone(self) -> None:
        """Restart the countdown to the next tick."""
        with self._cond:
            self._postponed = True
            self._cond.notify_all()

    def stop(self, *, wait: bool = True) -> None:
        """Stop ticking.

        With ``wait`` the call also blocks until an in-flight callback has
        returned. Callers holding a lock the callback may need must pass
        ``wait=False``.
        """
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self) -> None:
        while True:
            with self._cond:
                deadline = time.monotonic() + self.interval
                while not self._stopped:
                    if self._postponed:
                        self._postponed = False
                        deadline = time.monotonic() + self.interval
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._cond.wait(remaining)
                if self._stopped:
                    return
            try:
                self._callback()
            except Exception:
                logger.exception("Ticker %s callback failed", self._name)
