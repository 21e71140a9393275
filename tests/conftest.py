from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from info_bus.core.config import LogWriterSettings
from info_bus.core.dispatcher import Dispatcher
from info_bus.core.log_writer import FileLogWriter
from info_bus.core.models import MessageEnvelope
from info_bus.core.severity import Severity


class RecordingReceiver:
    """Receiver that keeps every (sender, envelope) it was handed."""

    def __init__(self) -> None:
        self.received: list[tuple[Any, MessageEnvelope]] = []
        self._lock = threading.Lock()

    def handle_message(self, sender: Any, envelope: MessageEnvelope) -> None:
        with self._lock:
            self.received.append((sender, envelope))

    @property
    def payloads(self) -> list[Any]:
        with self._lock:
            return [e.payload for _, e in self.received]


@pytest.fixture
def recorder() -> Callable[[], RecordingReceiver]:
    return RecordingReceiver


@pytest.fixture
def dispatcher() -> Iterator[Dispatcher]:
    bus = Dispatcher()
    yield bus
    bus.dispose()


@pytest.fixture
def make_writer(tmp_path: Path) -> Iterator[Callable[..., FileLogWriter]]:
    """Build FileLogWriters that never flush on their own unless asked to."""
    writers: list[FileLogWriter] = []

    def _make(**overrides: Any) -> FileLogWriter:
        fields: dict[str, Any] = {
            "path": tmp_path / "app.log",
            "timer_triggered": False,
            "trigger_threshold": 1_000_000,
        }
        fields.update(overrides)
        writer = FileLogWriter(LogWriterSettings(**fields))
        writers.append(writer)
        return writer

    yield _make
    for w in writers:
        w.dispose()


@pytest.fixture
def envelope() -> Callable[..., MessageEnvelope]:
    def _make(
        payload: Any,
        severity: Severity = Severity.INFO,
        timestamp: str = "2025.12.30 08:12:01,000001",
        thread_tag: str = "T1",
    ) -> MessageEnvelope:
        return MessageEnvelope(payload=payload, severity=severity, timestamp=timestamp, thread_tag=thread_tag)

    return _make


@pytest.fixture
def write_lines() -> Callable[[Path, list[str]], None]:
    def _write(path: Path, lines: list[str]) -> None:
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    return _write


@pytest.fixture
def wait_for() -> Callable[[Callable[[], bool]], bool]:
    """Poll a condition for up to 5 seconds."""

    def _wait(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(0.01)
        return condition()

    return _wait
