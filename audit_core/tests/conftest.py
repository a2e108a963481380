# audit_core/tests/conftest.py

from __future__ import annotations

import random
import uuid
from typing import Any, Callable, List, Optional

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from audit_core.models import AuditForm, AuditSample
from audit_core.services.assignment import AssignmentEngine
from audit_core.services.events import MemorySink
from audit_core.services.lifecycle import LifecycleController
from audit_core.services.store import SampleStore


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# ===============================================================
# Users
# ===============================================================

@pytest.fixture
def auditor_factory(db) -> Callable[..., Any]:
    """
    Users with an AuditorProfile (created by the post_save receiver).
    """
    User = get_user_model()

    def _factory(
        username: Optional[str] = None,
        *,
        rights: Optional[List[str]] = None,
        inactive: bool = False,
        is_active: bool = True,
        **extra: Any,
    ):
        user = User.objects.create_user(
            username=username or _rand("auditor"),
            password="pass123",
            is_active=is_active,
            **extra,
        )
        profile = user.auditor_profile
        if rights is not None:
            profile.rights = rights
        profile.is_inactive = inactive
        profile.save()
        return user

    return _factory


@pytest.fixture
def auditor_a(auditor_factory):
    return auditor_factory("auditor_a")


@pytest.fixture
def auditor_b(auditor_factory):
    return auditor_factory("auditor_b")


@pytest.fixture
def auditors(auditor_factory) -> list:
    return [auditor_factory(f"auditor_{i}") for i in range(3)]


@pytest.fixture
def manager(auditor_factory):
    return auditor_factory("manager", rights=["manage_samples"])


# ===============================================================
# Samples + forms
# ===============================================================

@pytest.fixture
def store() -> SampleStore:
    return SampleStore()


@pytest.fixture
def sample_factory(db, store) -> Callable[..., AuditSample]:
    """
    Samples go through the store so ids and guard bypass match production.
    """

    def _factory(*, status: str = "available", assigned_to=None, form_type: str = "Call Quality", **extra: Any) -> AuditSample:
        fields = {
            "customer_name": extra.pop("customer_name", _rand("customer")),
            "ticket_id": extra.pop("ticket_id", _rand("T")),
            "form_type": form_type,
            "status": status,
        }
        if assigned_to is not None:
            fields["assigned_to"] = assigned_to
        fields.update(extra)
        return store.create(**fields)

    return _factory


FORM_SECTIONS = [
    {
        "id": "s-opening",
        "name": "Opening",
        "questions": [
            {"id": "q-greeting", "text": "Did the agent greet the customer?", "mandatory": True, "weightage": 10},
            {
                "id": "q-verified",
                "text": "Was the customer verified?",
                "mandatory": True,
                "isFatal": True,
                "weightage": 20,
            },
            {
                "id": "q-escalated",
                "text": "Was the call escalated?",
                "mandatory": False,
                "weightage": 0,
                "controlsSection": True,
                "controlledSectionId": "s-escalation",
                "visibleOnValues": ["Yes"],
            },
        ],
    },
    {
        "id": "s-escalation",
        "name": "Escalation",
        "controlledBy": "q-escalated",
        "questions": [
            {"id": "q-ticket-raised", "text": "Was a ticket raised?", "mandatory": True, "weightage": 10},
        ],
    },
    {
        "id": "s-closing",
        "name": "Closing",
        "questions": [
            {
                "id": "q-summary",
                "text": "Did the agent summarise?",
                "mandatory": False,
                "weightage": 10,
                "visibleOnValues": "Yes, Partly",
            },
            {
                "id": "q-summary-quality",
                "text": "Summary quality",
                "mandatory": True,
                "weightage": 10,
                "controlledBy": "q-summary",
            },
        ],
    },
]


@pytest.fixture
def audit_form(db) -> AuditForm:
    return AuditForm.objects.create(name="Call Quality", sections=FORM_SECTIONS)


@pytest.fixture
def good_answers() -> dict:
    return {
        "q-greeting": "Yes",
        "q-verified": "Yes",
        "q-escalated": "No",
        "q-summary": "Yes",
        "q-summary-quality": "Good",
    }


# ===============================================================
# Services
# ===============================================================

@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(20240601)


@pytest.fixture
def engine(store, sink, rng) -> AssignmentEngine:
    return AssignmentEngine(store=store, sink=sink, rng=rng)


@pytest.fixture
def lifecycle(store, sink) -> LifecycleController:
    return LifecycleController(store=store, sink=sink)


# ===============================================================
# API
# ===============================================================

@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def client_for(api_client) -> Callable[[Any], APIClient]:
    def _client(user) -> APIClient:
        api_client.force_authenticate(user=user)
        return api_client

    return _client
