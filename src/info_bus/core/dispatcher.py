"""In-process publish/subscribe dispatcher.

Routes every published envelope to the registered receivers whose payload
type and severity set match. Delivery is serialized under a single lock, so
concurrent publishers never interleave mid-delivery.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .models import MessageEnvelope
from .receivers import Disposable, Flushable, MessageReceiver
from .severity import Severity, SeverityGroups, as_severities

logger = logging.getLogger(__name__)

PayloadType = type | tuple[type, ...]


@dataclass(frozen=True, slots=True)
class ReceiverRegistration:
    """What a receiver wants to see: an optional payload type and a severity set."""

    receiver: MessageReceiver
    payload_type: PayloadType | None
    severities: tuple[Severity, ...]

    def accepts(self, envelope: MessageEnvelope) -> bool:
        """Return True when the envelope matches this registration."""
        if self.payload_type is not None and not isinstance(envelope.payload, self.payload_type):
            return False
        return envelope.severity in self.severities


class Dispatcher:
    """Explicitly constructed message bus shared by producers and receivers.

    Example:
        bus = Dispatcher()
        bus.register_receiver(writer, None, "ALL")
        bus.publish("service started")
        bus.publish(exc, Severity.EXCEPTION, sender=self)
        bus.dispose()
    """

    def __init__(self) -> None:
        # Reentrant: receivers may publish or (un)register while being invoked.
        self._lock = threading.RLock()
        self._registrations: dict[int, ReceiverRegistration] = {}
        self._disposed = False

    # ------------------------------------------------------------------ #
    # registration
    # ------------------------------------------------------------------ #

    def register_receiver(
        self,
        receiver: MessageReceiver,
        payload_type: PayloadType | None = None,
        severities: str | Iterable[Severity] = SeverityGroups.ALL,
    ) -> bool:
        """Register a receiver unless it is already registered.

        Args:
            receiver: Object exposing ``handle_message(sender, envelope)``.
            payload_type: Only payloads that are instances of this type are
                delivered; None accepts any payload.
            severities: Accepted severities, or a pipe-delimited string such
                as ``"ERROR|EXCEPTION"``.

        Returns:
            True if the receiver was added, False if it was already present.
        """
        if not isinstance(receiver, MessageReceiver):
            raise TypeError(f"{receiver!r} does not implement handle_message(sender, envelope)")

        registration = ReceiverRegistration(
            receiver=receiver,
            payload_type=payload_type,
            severities=as_severities(severities),
        )
        with self._lock:
            key = id(receiver)
            if key in self._registrations:
                return False
            self._registrations[key] = registration
        logger.debug(
            "Registered %r (payload_type=%s, severities=%s)",
            receiver,
            payload_type,
            [s.value for s in registration.severities],
        )
        return True

    def unregister_receiver(self, receiver: MessageReceiver) -> bool:
        """Remove a receiver; returns False if it was not registered."""
        with self._lock:
            removed = self._registrations.pop(id(receiver), None)
        return removed is not None

    def is_registered(self, receiver: MessageReceiver) -> bool:
        with self._lock:
            return id(receiver) in self._registrations

    def receivers(self) -> list[MessageReceiver]:
        """Snapshot of the currently registered receivers."""
        return [r.receiver for r in self._snapshot()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._registrations)

    # ------------------------------------------------------------------ #
    # publishing
    # ------------------------------------------------------------------ #

    def publish(
        self,
        payload: Any,
        severity: Severity = Severity.INFO,
        *,
        sender: Any = None,
    ) -> MessageEnvelope:
        """Stamp ``payload`` and deliver it to every matching receiver.

        Receivers run synchronously on the calling thread while the dispatch
        lock is held. An exception raised by a receiver propagates to the
        caller and the remaining receivers of the pass are skipped.
        """
        envelope = MessageEnvelope.create(payload, severity)
        self.dispatch(envelope, sender=sender)
        return envelope

    def dispatch(self, envelope: MessageEnvelope, *, sender: Any = None) -> None:
        """Deliver an already-built envelope."""
        for key in self._snapshot_keys():
            # The receiver may have been removed since the snapshot.
            registration = self._registrations.get(key)
            if registration is None or not registration.accepts(envelope):
                continue
            with self._lock:
                registration.receiver.handle_message(sender, envelope)

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    def flush(self) -> None:
        """Ask every flushable receiver to drain its buffer."""
        for registration in self._snapshot():
            receiver = registration.receiver
            if isinstance(receiver, Flushable):
                receiver.flush()

    def dispose_all(self) -> None:
        """Dispose every receiver that supports disposal."""
        for registration in self._snapshot():
            receiver = registration.receiver
            if isinstance(receiver, Disposable):
                receiver.dispose()

    def dispose(self) -> None:
        """Tear the bus down once; later calls are no-ops."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
        self.dispose_all()

    def __enter__(self) -> Dispatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def _snapshot_keys(self) -> list[int]:
        with self._lock:
            return list(self._registrations)

    def _snapshot(self) -> list[ReceiverRegistration]:
        with self._lock:
            return list(self._registrations.values())
