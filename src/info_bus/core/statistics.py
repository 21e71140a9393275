"""Named counters reported through the dispatcher as one aggregate message."""

from __future__ import annotations

import logging
import re
import threading

from .config import StatisticsSettings
from .dispatcher import Dispatcher
from .severity import Severity
from .triggers import Ticker

logger = logging.getLogger(__name__)


class Statistics:
    """Low-overhead counters for hot call sites.

    Increments never touch the dispatcher. A report (``name: value`` lines,
    sorted by name) is published with ``Severity.STATISTICS`` on the same
    timer/counter policy the log writers use.
    """

    def __init__(self, dispatcher: Dispatcher, settings: StatisticsSettings | None = None) -> None:
        settings = settings or StatisticsSettings()
        self._dispatcher = dispatcher
        self._lock = threading.RLock()
        self._counters: dict[str, int] = {}
        self._overall = 0
        self._ticker: Ticker | None = None
        self._disposed = False
        self._timer_triggered = settings.timer_triggered
        self._trigger_threshold = settings.trigger_threshold
        self._regex_filter = ""
        self._compiled_filter: re.Pattern[str] | None = None
        self.regex_filter = settings.regex_filter

    # ------------------------------------------------------------------ #
    # configuration
    # ------------------------------------------------------------------ #

    @property
    def regex_filter(self) -> str:
        return self._regex_filter

    @regex_filter.setter
    def regex_filter(self, pattern: str) -> None:
        try:
            compiled = re.compile(pattern) if pattern else None
        except re.error as exc:
            raise ValueError(f"Invalid regex filter {pattern!r}: {exc}") from exc
        with self._lock:
            self._regex_filter = pattern
            self._compiled_filter = compiled

    @property
    def timer_triggered(self) -> bool:
        return self._timer_triggered

    @timer_triggered.setter
    def timer_triggered(self, value: bool) -> None:
        if self._timer_triggered != value:
            self._timer_triggered = value
            self._reset_ticker()

    @property
    def trigger_threshold(self) -> int:
        return self._trigger_threshold

    @trigger_threshold.setter
    def trigger_threshold(self, value: int) -> None:
        if value < 1:
            raise ValueError("trigger_threshold must be >= 1")
        if self._trigger_threshold != value:
            self._trigger_threshold = value
            self._reset_ticker()

    # ------------------------------------------------------------------ #
    # counters
    # ------------------------------------------------------------------ #

    def increment(self, name: str) -> int:
        """Add one to ``name`` (created at 0 on first use); returns the new value."""
        due = False
        with self._lock:
            value = self._counters.get(name, 0) + 1
            self._counters[name] = value
            self._overall += 1

            if self._timer_triggered:
                if self._ticker is None and not self._disposed:
                    self._start_ticker()
            elif self._overall > self._trigger_threshold:
                self._overall = 0
                due = True
        if due:
            self.report()
        return value

    def reset(self, name: str | None = None) -> None:
        """Zero one counter, or every counter plus the trigger count when name is None."""
        restart = False
        with self._lock:
            if name is not None:
                self._counters[name] = 0
                return
            for key in self._counters:
                self._counters[key] = 0
            self._overall = 0
            restart = self._timer_triggered
        if restart:
            self._reset_ticker()

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    # ------------------------------------------------------------------ #
    # reporting
    # ------------------------------------------------------------------ #

    def format_report(self) -> str:
        """Sorted ``name: value`` lines for counters passing the filter."""
        with self._lock:
            pattern = self._compiled_filter
            lines = [
                f"{name}: {self._counters[name]}"
                for name in sorted(self._counters)
                if pattern is None or pattern.search(name)
            ]
        return "\n".join(lines)

    def report(self) -> str | None:
        """Publish the current report; returns it, or None when nothing survived the filter."""
        text = self.format_report()
        if not text:
            return None
        # Published outside the counter lock so receivers may increment counters.
        self._dispatcher.publish(text, Severity.STATISTICS, sender=self)
        return text

    def stop(self) -> None:
        """Publish a final report and switch the timer off."""
        self.report()
        self._timer_triggered = False
        self._reset_ticker()

    def dispose(self) -> None:
        """Stop the timer for good; later increments only count."""
        with self._lock:
            self._disposed = True
            ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop(wait=False)

    @property
    def timer_running(self) -> bool:
        ticker = self._ticker
        return ticker is not None and ticker.running

    def __enter__(self) -> Statistics:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------ #
    # timer
    # ------------------------------------------------------------------ #

    def _start_ticker(self) -> None:
        self._ticker = Ticker(self._trigger_threshold / 1000.0, self._on_tick, name="statistics-ticker")
        self._ticker.start()

    def _reset_ticker(self) -> None:
        with self._lock:
            old, self._ticker = self._ticker, None
        # A tick may be blocked in publish() on a lock our caller holds.
        if old is not None:
            old.stop(wait=False)
        if self._timer_triggered:
            with self._lock:
                if self._ticker is None and not self._disposed:
                    self._start_ticker()

    def _on_tick(self) -> None:
        self.report()
