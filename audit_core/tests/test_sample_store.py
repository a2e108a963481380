import pytest
from django.core.exceptions import PermissionDenied
from django.db import DatabaseError

from audit_core.exceptions import NotFound, PersistenceError, ValidationError
from audit_core.models import AuditSample
from audit_core.services.store import as_record, format_sample_id


# ===============================================================
# Create / read
# ===============================================================

@pytest.mark.django_db
def test_create_assigns_sample_id_and_defaults(store):
    sample = store.create(customer_name="Acme", ticket_id="T-1", form_type="Call Quality")

    assert sample.sample_id == format_sample_id(sample.pk)
    assert sample.sample_id.startswith("AS-")
    assert sample.status == "available"
    assert sample.assigned_to is None
    assert sample.priority == "medium"
    assert sample.has_draft is False

    again = store.get(sample.sample_id)
    assert again.pk == sample.pk


@pytest.mark.django_db
def test_create_keeps_supplied_sample_id(store):
    sample = store.create(sample_id="EXT-9", customer_name="Acme", ticket_id="T-1", form_type="F")
    assert sample.sample_id == "EXT-9"
    assert store.exists("EXT-9")


@pytest.mark.django_db
def test_create_rejects_duplicate_sample_id(store):
    store.create(sample_id="EXT-9", customer_name="Acme", ticket_id="T-1", form_type="F")

    with pytest.raises(ValidationError) as exc:
        store.create(sample_id="EXT-9", customer_name="Other", ticket_id="T-2", form_type="F")

    assert exc.value.code == "validation_error"
    assert AuditSample.objects.filter(sample_id="EXT-9").count() == 1


@pytest.mark.django_db
def test_create_rejects_missing_required_fields(store):
    with pytest.raises(ValidationError) as exc:
        store.create(customer_name="Acme", ticket_id="", form_type="F")
    assert exc.value.missing == ["ticket_id"]


@pytest.mark.django_db
def test_create_rejects_status_assignee_mismatch(store, auditor_a):
    with pytest.raises(ValidationError):
        store.create(customer_name="A", ticket_id="T", form_type="F", status="assigned")

    with pytest.raises(ValidationError):
        store.create(customer_name="A", ticket_id="T", form_type="F", assigned_to=auditor_a)

    assert AuditSample.objects.count() == 0


@pytest.mark.django_db
def test_get_missing_raises_not_found(store):
    with pytest.raises(NotFound):
        store.get("AS-999999")


# ===============================================================
# Listing
# ===============================================================

@pytest.mark.django_db
def test_list_by_status_excludes_skipped_by_default(store, sample_factory, auditor_a):
    a = sample_factory()
    b = sample_factory(status="assigned", assigned_to=auditor_a)
    c = sample_factory(status="skipped", assigned_to=auditor_a, skip_reason="duplicate")

    assert [s.pk for s in store.list_by_status()] == [a.pk, b.pk]
    assert [s.pk for s in store.list_by_status("skipped")] == [c.pk]
    assert [s.pk for s in store.list_by_status("assigned", assigned_to=auditor_a)] == [b.pk]


@pytest.mark.django_db
def test_available_ids_keeps_caller_order(store, sample_factory, auditor_a):
    first = sample_factory()
    taken = sample_factory(status="assigned", assigned_to=auditor_a)
    second = sample_factory()

    ids = [second.sample_id, "AS-404404", taken.sample_id, first.sample_id]
    assert store.available_ids(ids) == [second.sample_id, first.sample_id]


class _BrokenManager:
    def filter(self, *args, **kwargs):
        raise DatabaseError("connection lost")


class _BrokenModel:
    objects = _BrokenManager()


def test_available_ids_wraps_storage_failures(store):
    store.model = _BrokenModel

    with pytest.raises(PersistenceError) as exc:
        store.available_ids(["AS-000001"])

    assert exc.value.code == "persistence_error"


@pytest.mark.django_db
def test_list_by_unknown_status_is_rejected(store):
    with pytest.raises(ValidationError):
        store.list_by_status("archived")


# ===============================================================
# Update / delete
# ===============================================================

@pytest.mark.django_db
def test_update_merges_fields(store, sample_factory):
    sample = sample_factory()
    updated = store.update(sample.sample_id, priority="high", metadata={"channel": "phone"})

    assert updated.priority == "high"
    assert updated.metadata == {"channel": "phone"}


@pytest.mark.django_db
def test_sample_id_is_immutable(store, sample_factory):
    sample = sample_factory()

    with pytest.raises(ValidationError):
        store.update(sample.sample_id, sample_id="OTHER")
    with pytest.raises(ValidationError):
        store.update(sample.sample_id, sample_id="")

    # same id is a no-op
    same = store.update(sample.sample_id, sample_id=sample.sample_id, priority="low")
    assert same.priority == "low"
    assert store.exists(sample.sample_id)
    assert not store.exists("OTHER")


@pytest.mark.django_db
def test_direct_status_write_is_blocked(sample_factory):
    sample = sample_factory()
    sample.status = "completed"

    with pytest.raises(PermissionDenied):
        sample.save()

    sample.refresh_from_db()
    assert sample.status == "available"


@pytest.mark.django_db
def test_direct_assignee_and_id_writes_are_blocked(sample_factory, auditor_a):
    sample = sample_factory()
    original_id = sample.sample_id

    sample.assigned_to = auditor_a
    with pytest.raises(PermissionDenied, match="assigned_to_id"):
        sample.save()

    sample.refresh_from_db()
    sample.sample_id = "HIJACK-1"
    with pytest.raises(PermissionDenied, match="SampleStore"):
        sample.save()

    sample.refresh_from_db()
    assert sample.sample_id == original_id
    assert sample.assigned_to is None

    # unguarded fields save normally
    sample.priority = "high"
    sample.save()
    sample.refresh_from_db()
    assert sample.priority == "high"


@pytest.mark.django_db
def test_delete_reports_whether_a_row_was_removed(store, sample_factory):
    sample = sample_factory()
    assert store.delete(sample.sample_id) is True
    assert store.delete(sample.sample_id) is False


@pytest.mark.django_db
def test_as_record_carries_every_field(sample_factory, auditor_a):
    sample = sample_factory(status="assigned", assigned_to=auditor_a, batch_id="B1")
    record = as_record(sample)

    assert record["id"] == sample.sample_id
    assert record["status"] == "assigned"
    assert record["assigned_to"] == auditor_a.pk
    assert record["assigned_to_username"] == "auditor_a"
    assert record["batch_id"] == "B1"
    assert record["uploaded_at"] is not None
