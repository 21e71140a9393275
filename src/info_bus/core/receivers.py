"""Receiver capability interfaces.

A receiver only has to implement ``handle_message``. Flushing and disposal
are optional extensions detected at runtime.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from .models import MessageEnvelope


@runtime_checkable
class MessageReceiver(Protocol):
    """Anything that can be registered with a Dispatcher."""

    def handle_message(self, sender: Any, envelope: MessageEnvelope) -> None:
        """Process one envelope. Must not raise."""
        ...


@runtime_checkable
class Flushable(Protocol):
    """Receiver that buffers and can drain on demand."""

    def flush(self) -> None:
        ...


@runtime_checkable
class Disposable(Protocol):
    """Receiver that owns resources released at teardown."""

    def dispose(self) -> None:
        ...


class CallbackReceiver:
    """Adapt a plain callable ``fn(sender, envelope)`` into a receiver."""

    def __init__(self, callback: Callable[[Any, MessageEnvelope], None]) -> None:
        self._callback = callback

    def handle_message(self, sender: Any, envelope: MessageEnvelope) -> None:
        self._callback(sender, envelope)

    def __repr__(self) -> str:
        return f"CallbackReceiver({self._callback!r})"
