# audit_core/signals.py
from __future__ import annotations

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from audit_core.models import AuditorProfile


# ===============================================================
# Auditor profile bootstrap
# ===============================================================
@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_auditor_profile(sender, instance, created, **kwargs):
    """
    Every new user gets a profile with the default rights.
    Superusers are created protected.
    """
    if not created or kwargs.get("raw"):
        return

    AuditorProfile.objects.get_or_create(
        user=instance,
        defaults={"is_protected": bool(getattr(instance, "is_superuser", False))},
    )
