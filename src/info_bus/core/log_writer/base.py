"""Buffering and flush protocol shared by all log writers.

Producers append to an *active* buffer under a short lock. A flush swaps the
active buffer out and hands the swapped lines to a dedicated worker thread,
so producers never wait for storage. At most one flush worker runs at a time.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import timedelta
from typing import Any

from ..config import LogWriterSettings
from ..models import TIMESTAMP_WIDTH, MessageEnvelope
from ..triggers import Ticker

logger = logging.getLogger(__name__)


def _timestamp_key(line: str) -> str:
    return line[:TIMESTAMP_WIDTH]


class BufferedLogWriter(ABC):
    """Receiver base that buffers lines and flushes them asynchronously.

    Two trigger policies decide when a flush happens:

    - timer-triggered (default): every ``trigger_threshold`` milliseconds
    - counter-triggered: once more than ``trigger_threshold`` lines were
      appended since the last flush

    ``flush()`` drains synchronously; trigger-driven flushes run in the
    background.
    """

    def __init__(self, settings: LogWriterSettings | None = None) -> None:
        settings = settings or LogWriterSettings()
        self.settings = settings
        self.plain = settings.plain
        self.max_buffer_lines = settings.max_buffer_lines
        self.archive_interval: timedelta | None = settings.archive_interval
        self.archive_max_count = settings.archive_max_count

        self._timer_triggered = settings.timer_triggered
        self._trigger_threshold = settings.trigger_threshold

        self._buffer_lock = threading.Lock()  # guards _active
        self._write_lock = threading.Lock()  # guards storage writes + archiving
        self._flush_lock = threading.RLock()  # serializes flush initiation
        self._active: list[str] = []
        self._pending_count = 0
        self._worker: threading.Thread | None = None
        self._ticker: Ticker | None = None
        self._disposed = False

    # ------------------------------------------------------------------ #
    # trigger policy
    # ------------------------------------------------------------------ #

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
        """Timer interval in milliseconds, or line count in counter mode."""
        return self._trigger_threshold

    @trigger_threshold.setter
    def trigger_threshold(self, value: int) -> None:
        if value < 1:
            raise ValueError("trigger_threshold must be >= 1")
        if self._trigger_threshold != value:
            self._trigger_threshold = value
            self._reset_ticker()

    def _reset_ticker(self) -> None:
        with self._flush_lock:
            old, self._ticker = self._ticker, None
        # Stopped outside the lock: the old ticker may be mid-flush.
        if old is not None:
            old.stop()
        self._ensure_ticker()

    def _ensure_ticker(self) -> None:
        with self._flush_lock:
            if self._ticker is not None or not self._timer_triggered or self._disposed:
                return
            self._ticker = Ticker(
                self._trigger_threshold / 1000.0,
                self._on_tick,
                name=f"{type(self).__name__}-ticker",
            )
            self._ticker.start()

    def _on_tick(self) -> None:
        self._flush_buffer(wait=False)

    # ------------------------------------------------------------------ #
    # receiver / producer side
    # ------------------------------------------------------------------ #

    @abstractmethod
    def handle_message(self, sender: Any, envelope: MessageEnvelope) -> None:
        """Format an envelope and append it via ``log``."""

    def log(self, line: str) -> None:
        """Append a formatted line to the active buffer."""
        count_triggered = False
        with self._buffer_lock:
            self._active.append(line)
            buffered = len(self._active)
            if not self._timer_triggered:
                self._pending_count += 1
                if self._pending_count > self._trigger_threshold:
                    self._pending_count = 0
                    count_triggered = True

        if count_triggered or buffered >= self.max_buffer_lines:
            self._flush_buffer(wait=False)
        elif self._timer_triggered and self._ticker is None:
            self._ensure_ticker()

    @property
    def pending_lines(self) -> int:
        """Lines waiting in the active buffer."""
        with self._buffer_lock:
            return len(self._active)

    # ------------------------------------------------------------------ #
    # flushing
    # ------------------------------------------------------------------ #

    def flush(self) -> None:
        """Drain the active buffer to storage and wait for completion."""
        self._flush_buffer(wait=True)

    def _flush_buffer(self, *, wait: bool) -> None:
        with self._flush_lock:
            previous = self._worker
            if previous is not None and previous is not threading.current_thread():
                previous.join()

            if self._ticker is not None:
                self._ticker.postpone()

            with self._buffer_lock:
                batch, self._active = self._active, []
                self._pending_count = 0

            worker = threading.Thread(
                target=self._flush_worker,
                args=(batch,),
                name=f"{type(self).__name__}-flush",
            )
            self._worker = worker
            worker.start()

        if wait:
            worker.join()

    def _flush_worker(self, batch: list[str]) -> None:
        with self._write_lock:
            if batch:
                if not self.plain:
                    # Producers on different threads append out of timestamp order.
                    batch.sort(key=_timestamp_key)
                self.write_lines(batch)
            if self.archive_interval is not None:
                self.organize_archives(self.archive_interval, self.archive_max_count)

    @abstractmethod
    def write_lines(self, lines: Sequence[str]) -> None:
        """Persist a batch of lines. Must not raise."""

    def organize_archives(self, interval: timedelta, max_count: int) -> None:
        """Rotate and prune backing storage after a flush (optional)."""

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    def dispose(self) -> None:
        """Stop the timer and flush everything still buffered."""
        with self._flush_lock:
            if self._disposed:
                return
            self._disposed = True
            ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()
        self.flush()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __enter__(self) -> BufferedLogWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()
