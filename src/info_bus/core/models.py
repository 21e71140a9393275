"""Core data models for the notification bus."""

from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .severity import Severity

TIMESTAMP_FORMAT = "%Y.%m.%d %H:%M:%S,%f"
TIMESTAMP_WIDTH = 26  # len("2025.12.30 08:12:01,123456")


def format_timestamp(moment: datetime | None = None) -> str:
    """Format a local timestamp with microsecond precision."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def current_thread_tag() -> str:
    """Identify the calling thread as ``<name>:<native id>``."""
    t = threading.current_thread()
    return f"{t.name}:{t.native_id}"


@dataclass(frozen=True, slots=True)
class MessageEnvelope:
    """Immutable record handed to every matching receiver of one publish call.

    The same instance is shared by all receivers of a dispatch pass.
    """

    payload: Any
    severity: Severity
    timestamp: str
    thread_tag: str = ""

    @classmethod
    def create(cls, payload: Any, severity: Severity = Severity.INFO) -> MessageEnvelope:
        """Stamp a payload with the current time and calling thread."""
        return cls(
            payload=payload,
            severity=severity,
            timestamp=format_timestamp(),
            thread_tag=current_thread_tag(),
        )

    @property
    def text(self) -> str:
        """Payload rendered as text (exceptions include their traceback)."""
        payload = self.payload
        if isinstance(payload, BaseException):
            return "".join(traceback.format_exception(payload)).rstrip("\n")
        if payload is None:
            return ""
        return str(payload)
