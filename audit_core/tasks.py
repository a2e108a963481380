# audit_core/tasks.py
from __future__ import annotations

import logging

from celery import shared_task
from django.contrib.auth import get_user_model

from audit_core.models import AuditLog

logger = logging.getLogger(__name__)


@shared_task
def mirror_sample_event(message: dict) -> int | None:
    """
    Mirror one lifecycle event into the AuditLog reporting table.

    Returns the AuditLog id, or None when the message is unusable.
    """
    kind = (message or {}).get("kind")
    if not kind:
        logger.warning("Dropping sample event without kind: %r", message)
        return None

    user = None
    actor_id = message.get("actor_id")
    if actor_id:
        User = get_user_model()
        user = User.objects.filter(pk=actor_id).first()

    entry = AuditLog.objects.create(
        user=user,
        action=kind,
        details={
            "sample_id": message.get("sample_id"),
            "payload": message.get("payload") or {},
            "occurred_at": message.get("occurred_at"),
        },
    )
    return entry.pk
