import pytest
from django.urls import reverse

from audit_core.models import AuditSample, DeletedSample


def _url(name, **kwargs):
    return reverse(f"audit_core:{name}", kwargs=kwargs or None)


# ===============================================================
# Listing + intake
# ===============================================================

@pytest.mark.django_db
def test_anonymous_requests_are_rejected(api_client):
    res = api_client.get(_url("sample-list"))
    assert res.status_code in (401, 403)


@pytest.mark.django_db
def test_manager_creates_available_sample(client_for, manager):
    res = client_for(manager).post(
        _url("sample-list"),
        {"customer_name": "Acme", "ticket_id": "T-100", "form_type": "Call Quality", "priority": "high"},
        format="json",
    )

    assert res.status_code == 201, res.content
    body = res.json()
    assert body["status"] == "available"
    assert body["sample_id"].startswith("AS-")
    assert body["priority"] == "high"
    assert body["uploaded_by"] == manager.pk


@pytest.mark.django_db
def test_duplicate_sample_id_is_bad_request(client_for, manager):
    payload = {"sample_id": "EXT-1", "customer_name": "Acme", "ticket_id": "T-1", "form_type": "Call Quality"}
    client = client_for(manager)

    assert client.post(_url("sample-list"), payload, format="json").status_code == 201

    res = client.post(_url("sample-list"), payload, format="json")
    assert res.status_code == 400
    assert res.json()["error"] == "validation_error"
    assert AuditSample.objects.filter(sample_id="EXT-1").count() == 1


@pytest.mark.django_db
def test_auditor_cannot_create_samples(client_for, auditor_a):
    res = client_for(auditor_a).post(
        _url("sample-list"),
        {"customer_name": "Acme", "ticket_id": "T-100", "form_type": "Call Quality"},
        format="json",
    )
    assert res.status_code == 403


@pytest.mark.django_db
def test_skipped_samples_are_hidden_from_default_listing(client_for, sample_factory, auditor_a, manager):
    visible = sample_factory()
    skipped = sample_factory(status="skipped", assigned_to=auditor_a, skip_reason="dup")

    res = client_for(auditor_a).get(_url("sample-list"))
    ids = [row["sample_id"] for row in res.json()["results"]]
    assert ids == [visible.sample_id]

    res = client_for(auditor_a).get(_url("sample-list"), {"status": "skipped"})
    assert res.status_code == 403

    res = client_for(manager).get(_url("sample-list"), {"status": "skipped"})
    assert [row["sample_id"] for row in res.json()["results"]] == [skipped.sample_id]


@pytest.mark.django_db
def test_filter_by_assignee(client_for, sample_factory, auditor_a, auditor_b, manager):
    mine = sample_factory(status="assigned", assigned_to=auditor_a)
    sample_factory(status="assigned", assigned_to=auditor_b)

    res = client_for(manager).get(_url("sample-list"), {"assigned_to": auditor_a.pk})
    assert [row["sample_id"] for row in res.json()["results"]] == [mine.sample_id]


@pytest.mark.django_db
def test_unknown_sample_is_404(client_for, manager):
    res = client_for(manager).get(_url("sample-detail", sample_id="AS-999999"))
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


# ===============================================================
# Assignment
# ===============================================================

@pytest.mark.django_db
def test_assign_and_conflict(client_for, sample_factory, auditor_a, auditor_b, manager):
    sample = sample_factory()
    client = client_for(manager)

    res = client.post(_url("sample-assign", sample_id=sample.sample_id), {"auditor_id": auditor_a.pk}, format="json")
    assert res.status_code == 200
    assert res.json()["assigned_to"] == auditor_a.pk

    res = client.post(_url("sample-assign", sample_id=sample.sample_id), {"auditor_id": auditor_b.pk}, format="json")
    assert res.status_code == 409
    assert res.json()["error"] == "invalid_state"


@pytest.mark.django_db
def test_assign_random_can_exclude_viewer(client_for, sample_factory, auditor_factory):
    boss = auditor_factory("boss", rights=["audit", "manage_samples"])
    worker = auditor_factory("worker")
    sample = sample_factory()

    res = client_for(boss).post(
        _url("sample-assign", sample_id=sample.sample_id),
        {"random": True, "exclude_self": True},
        format="json",
    )
    assert res.status_code == 200
    assert res.json()["assigned_to"] == worker.pk


@pytest.mark.django_db
def test_assign_to_ineligible_auditor_is_conflict(client_for, sample_factory, manager):
    sample = sample_factory()
    res = client_for(manager).post(
        _url("sample-assign", sample_id=sample.sample_id), {"auditor_id": manager.pk}, format="json"
    )
    assert res.status_code == 409
    assert res.json()["error"] == "not_eligible"

    res = client_for(manager).post(
        _url("sample-assign", sample_id=sample.sample_id), {"auditor_id": 987654}, format="json"
    )
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


@pytest.mark.django_db
def test_bulk_assign_endpoint(client_for, sample_factory, auditors, manager):
    ids = [sample_factory().sample_id for _ in range(10)]

    res = client_for(manager).post(
        _url("sample-bulk-assign"),
        {"sample_ids": ids, "auditor_ids": [u.pk for u in auditors]},
        format="json",
    )

    assert res.status_code == 200
    body = res.json()
    assert body["assigned"] == 10
    assert body["errors"] == []
    assert body["strategy"] in {"round_robin", "blocked", "reverse"}
    assert AuditSample.objects.filter(status="assigned").count() == 10


@pytest.mark.django_db
def test_bulk_assign_requires_manager(client_for, auditor_a):
    res = client_for(auditor_a).post(
        _url("sample-bulk-assign"), {"sample_ids": [], "auditor_ids": []}, format="json"
    )
    assert res.status_code == 403


@pytest.mark.django_db
def test_eligible_auditors_listing(client_for, auditors, manager):
    res = client_for(manager).get(_url("auditor-eligible"))
    assert res.status_code == 200
    assert [row["user_id"] for row in res.json()] == sorted(u.pk for u in auditors)
    assert all(row["workload"] == 0 for row in res.json())


# ===============================================================
# Lifecycle
# ===============================================================

@pytest.mark.django_db
def test_full_audit_flow(client_for, sample_factory, auditor_a, audit_form, good_answers):
    sample = sample_factory(status="assigned", assigned_to=auditor_a)
    client = client_for(auditor_a)
    sid = sample.sample_id

    res = client.post(_url("sample-start", sample_id=sid))
    assert res.status_code == 200
    assert res.json()["sample"]["status"] == "inProgress"
    assert res.json()["form_found"] is True

    res = client.post(_url("sample-draft", sample_id=sid), {"answers": {"q-greeting": "Yes"}}, format="json")
    assert res.status_code == 200

    res = client.get(_url("sample-draft", sample_id=sid))
    assert res.json()["answers"] == {"q-greeting": "Yes"}

    res = client.post(_url("sample-complete", sample_id=sid), {"answers": {"q-greeting": "Yes"}}, format="json")
    assert res.status_code == 400
    assert "q-verified" in res.json()["missing"]

    res = client.post(_url("sample-complete", sample_id=sid), {"answers": good_answers}, format="json")
    assert res.status_code == 201
    assert res.json()["score"] == 100

    res = client.get(_url("report-list"))
    assert [row["audit_id"] for row in res.json()["results"]] == [sid]


@pytest.mark.django_db
def test_other_auditor_cannot_touch_sample(client_for, sample_factory, auditor_a, auditor_b):
    sample = sample_factory(status="inProgress", assigned_to=auditor_a)
    client = client_for(auditor_b)

    res = client.post(_url("sample-draft", sample_id=sample.sample_id), {"answers": {"q": "x"}}, format="json")
    assert res.status_code == 403

    res = client.post(_url("sample-start", sample_id=sample.sample_id))
    assert res.status_code == 409


@pytest.mark.django_db
def test_skip_and_reset_endpoints(client_for, sample_factory, auditor_a, manager):
    sample = sample_factory(status="assigned", assigned_to=auditor_a)
    sid = sample.sample_id

    res = client_for(auditor_a).post(_url("sample-skip", sample_id=sid), {"reason": ""}, format="json")
    assert res.status_code == 400

    res = client_for(auditor_a).post(_url("sample-skip", sample_id=sid), {"reason": "wrong queue"}, format="json")
    assert res.status_code == 201

    res = client_for(auditor_a).post(_url("sample-reset", sample_id=sid))
    assert res.status_code == 403

    res = client_for(manager).get(_url("skipped-list"))
    assert [row["audit_id"] for row in res.json()["results"]] == [sid]

    res = client_for(manager).post(_url("sample-reset", sample_id=sid))
    assert res.status_code == 200
    assert res.json()["status"] == "available"
    assert res.json()["assigned_to"] is None


@pytest.mark.django_db
def test_permanent_delete_endpoint(client_for, sample_factory, auditor_a, manager):
    sample = sample_factory(status="completed", assigned_to=auditor_a)

    res = client_for(auditor_a).delete(_url("sample-detail", sample_id=sample.sample_id))
    assert res.status_code == 403

    res = client_for(manager).delete(_url("sample-detail", sample_id=sample.sample_id))
    assert res.status_code == 200
    assert res.json()["status_at_deletion"] == "completed"
    assert DeletedSample.objects.filter(sample_id=sample.sample_id).exists()
    assert not AuditSample.objects.filter(pk=sample.pk).exists()


@pytest.mark.django_db
def test_workflow_definition_endpoint(client_for, auditor_a):
    res = client_for(auditor_a).get(_url("workflow-definition"))
    assert res.status_code == 200
    assert "inProgress" in res.json()["states"]
