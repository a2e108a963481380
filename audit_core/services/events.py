# audit_core/services/events.py
"""
Lifecycle event delivery.

Services receive an EventSink and call emit() after a transition has been
written. Delivery is best-effort: a sink failure is logged and never fails
the transition that produced the event.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


SAMPLE_CREATED = "sample.created"
SAMPLE_ASSIGNED = "sample.assigned"
SAMPLE_STARTED = "sample.started"
SAMPLE_DRAFT_SAVED = "sample.draft_saved"
SAMPLE_COMPLETED = "sample.completed"
SAMPLE_SKIPPED = "sample.skipped"
SAMPLE_RESET = "sample.reset"
SAMPLE_DELETED = "sample.deleted"


@dataclass(frozen=True)
class SampleEvent:
    kind: str
    sample_id: str
    actor_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=timezone.now)

    def as_message(self) -> Dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


class EventSink:
    """
    Receiver for lifecycle events. Subclasses implement deliver().
    """

    def deliver(self, event: SampleEvent) -> None:
        raise NotImplementedError

    def emit(self, event: SampleEvent) -> None:
        try:
            self.deliver(event)
        except Exception:
            logger.exception("Event delivery failed for %s %s (ignored).", event.kind, event.sample_id)


class NullSink(EventSink):
    def deliver(self, event: SampleEvent) -> None:
        return None


class CallbackSink(EventSink):
    """
    Forwards events to a plain callable. Handy for tests and scripts.
    """

    def __init__(self, callback: Callable[[SampleEvent], None]):
        self.callback = callback

    def deliver(self, event: SampleEvent) -> None:
        self.callback(event)


class MemorySink(EventSink):
    def __init__(self):
        self.events: List[SampleEvent] = []

    def deliver(self, event: SampleEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]


class CelerySyncSink(EventSink):
    """
    Mirrors events into the reporting store through a Celery task,
    scheduled only once the surrounding transaction commits.
    """

    def deliver(self, event: SampleEvent) -> None:
        message = event.as_message()
        transaction.on_commit(lambda: self._enqueue(message))

    @staticmethod
    def _enqueue(message: Dict[str, Any]) -> None:
        from audit_core.tasks import mirror_sample_event

        try:
            mirror_sample_event.delay(message)
        except Exception:
            logger.exception("Could not enqueue %s for %s (ignored).", message.get("kind"), message.get("sample_id"))


def default_sink() -> EventSink:
    if getattr(settings, "AUDIT_SYNC_EVENTS", True):
        return CelerySyncSink()
    return NullSink()


__all__ = [
    "SAMPLE_CREATED",
    "SAMPLE_ASSIGNED",
    "SAMPLE_STARTED",
    "SAMPLE_DRAFT_SAVED",
    "SAMPLE_COMPLETED",
    "SAMPLE_SKIPPED",
    "SAMPLE_RESET",
    "SAMPLE_DELETED",
    "SampleEvent",
    "EventSink",
    "NullSink",
    "CallbackSink",
    "MemorySink",
    "CelerySyncSink",
    "default_sink",
]
