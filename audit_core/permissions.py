# audit_core/permissions.py
from __future__ import annotations

from django.conf import settings
from rest_framework.permissions import BasePermission, SAFE_METHODS


# ------------------------------------------------------------------
# Utilities
# ------------------------------------------------------------------
def _manager_right() -> str:
    return getattr(settings, "AUDIT_MANAGER_RIGHT", "manage_samples")


def is_sample_manager(user) -> bool:
    """
    Elevated privilege: Django superuser, or a profile holding the
    manager right. Inactive profiles never qualify.
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True

    profile = getattr(user, "auditor_profile", None)
    if profile is None or profile.is_inactive:
        return False
    return profile.has_right(_manager_right())


def is_assignee(user, sample) -> bool:
    return bool(user and user.is_authenticated and sample.assigned_to_id == user.pk)


# ------------------------------------------------------------------
# Permission classes
# ------------------------------------------------------------------
class IsSampleManager(BasePermission):
    message = "This action requires the sample manager right."

    def has_permission(self, request, view):
        return is_sample_manager(getattr(request, "user", None))


class IsSampleManagerOrReadOnly(BasePermission):
    """
    Read: any authenticated user
    Write: sample managers only
    """

    message = "Write access requires the sample manager right."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return is_sample_manager(user)


class IsAssigneeOrManager(BasePermission):
    """
    Object level: the sample's assignee, or a sample manager.
    """

    message = "You are not assigned to this sample."

    def has_object_permission(self, request, view, obj):
        user = getattr(request, "user", None)
        return is_assignee(user, obj) or is_sample_manager(user)
