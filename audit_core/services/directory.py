# audit_core/services/directory.py
"""
Auditor directory: read-only view of who may receive samples and how
much open work each of them holds.

Workload is always computed from the sample table at call time. Nothing is
cached between calls so fairness decisions see current assignments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Count

from audit_core.exceptions import NotFound
from audit_core.models import AuditorProfile, AuditSample
from audit_core.services.store import persistence_errors
from audit_core.workflows import WORKLOAD_STATES


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str
    active: bool
    has_audit_capability: bool

    @property
    def eligible(self) -> bool:
        return self.active and self.has_audit_capability


@dataclass(frozen=True)
class Auditor:
    user_id: int
    username: str
    workload: int


def _capability() -> str:
    return getattr(settings, "AUDIT_CAPABILITY", "audit")


def _identity_for(user, profile: Optional[AuditorProfile]) -> Identity:
    active = bool(user.is_active) and bool(profile) and not profile.is_inactive
    capable = bool(profile) and profile.has_right(_capability())
    return Identity(
        user_id=user.pk,
        username=user.get_username(),
        active=active,
        has_audit_capability=capable,
    )


class AuditorDirectory:
    """
    Never mutates state.
    """

    def identity(self, user_id: int) -> Identity:
        User = get_user_model()
        with persistence_errors("Loading auditor"):
            user = User.objects.select_related("auditor_profile").filter(pk=user_id).first()
        if user is None:
            raise NotFound(f"Auditor {user_id} does not exist.", auditor_id=user_id)
        return _identity_for(user, getattr(user, "auditor_profile", None))

    def is_eligible(self, user_id: int) -> bool:
        try:
            return self.identity(user_id).eligible
        except NotFound:
            return False

    def workload(self, user_id: int) -> int:
        with persistence_errors("Counting workload"):
            return AuditSample.objects.filter(
                assigned_to_id=user_id,
                status__in=WORKLOAD_STATES,
            ).count()

    def workloads(self, user_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(user_ids)
        with persistence_errors("Counting workload"):
            rows = (
                AuditSample.objects.filter(assigned_to_id__in=ids, status__in=WORKLOAD_STATES)
                .values("assigned_to_id")
                .annotate(n=Count("id"))
            )
            counts = {row["assigned_to_id"]: row["n"] for row in rows}
        return {uid: counts.get(uid, 0) for uid in ids}

    def list_eligible(
        self,
        excluding: Optional[int] = None,
        restrict_to: Optional[Iterable[int]] = None,
    ) -> List[Auditor]:
        """
        Eligible auditors ordered by user id, each with a fresh workload.

        excluding removes one identity (e.g. the viewing admin);
        restrict_to limits the result to the given user ids.
        """
        profiles = (
            AuditorProfile.objects.select_related("user")
            .filter(is_inactive=False, user__is_active=True)
            .order_by("user_id")
        )
        if restrict_to is not None:
            profiles = profiles.filter(user_id__in=list(restrict_to))
        if excluding is not None:
            profiles = profiles.exclude(user_id=excluding)

        with persistence_errors("Listing auditors"):
            # JSON containment lookups are not portable to SQLite
            eligible = [p for p in profiles if p.has_right(_capability())]

        loads = self.workloads(p.user_id for p in eligible)
        return [
            Auditor(user_id=p.user_id, username=p.user.get_username(), workload=loads[p.user_id])
            for p in eligible
        ]
