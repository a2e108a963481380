import pytest

from audit_core.exceptions import NotFound
from audit_core.services.directory import AuditorDirectory


@pytest.mark.django_db
def test_profile_is_created_with_audit_right(auditor_a):
    assert auditor_a.auditor_profile.rights == ["audit"]
    assert AuditorDirectory().is_eligible(auditor_a.pk)


@pytest.mark.django_db
def test_identity_reports_capability_and_activity(auditor_factory):
    inactive = auditor_factory("gone", inactive=True)
    no_right = auditor_factory("viewer", rights=[])
    disabled = auditor_factory("disabled", is_active=False)

    directory = AuditorDirectory()

    ident = directory.identity(inactive.pk)
    assert ident.username == "gone"
    assert ident.active is False
    assert ident.has_audit_capability is True
    assert ident.eligible is False

    assert directory.identity(no_right.pk).has_audit_capability is False
    assert directory.is_eligible(disabled.pk) is False


@pytest.mark.django_db
def test_identity_for_unknown_user():
    with pytest.raises(NotFound):
        AuditorDirectory().identity(424242)
    assert AuditorDirectory().is_eligible(424242) is False


@pytest.mark.django_db
def test_list_eligible_is_ordered_and_filtered(auditors, auditor_factory, manager):
    auditor_factory("retired", inactive=True)

    listed = AuditorDirectory().list_eligible()
    assert [a.user_id for a in listed] == sorted(u.pk for u in auditors)

    excluded = AuditorDirectory().list_eligible(excluding=auditors[0].pk)
    assert auditors[0].pk not in {a.user_id for a in excluded}

    restricted = AuditorDirectory().list_eligible(restrict_to=[auditors[2].pk, manager.pk])
    assert [a.user_id for a in restricted] == [auditors[2].pk]


@pytest.mark.django_db
def test_workload_counts_open_work_only(auditor_a, sample_factory):
    sample_factory(status="assigned", assigned_to=auditor_a)
    sample_factory(status="inProgress", assigned_to=auditor_a)
    sample_factory(status="completed", assigned_to=auditor_a)
    sample_factory(status="skipped", assigned_to=auditor_a, skip_reason="dup")

    directory = AuditorDirectory()
    assert directory.workload(auditor_a.pk) == 2
    assert directory.list_eligible()[0].workload == 2


@pytest.mark.django_db
def test_protected_profile_cannot_be_stripped(auditor_factory):
    from django.core.exceptions import ValidationError as DjangoValidationError

    user = auditor_factory("root", rights=["audit", "manage_samples"])
    profile = user.auditor_profile
    profile.is_protected = True
    profile.save()

    profile.rights = ["audit"]
    with pytest.raises(DjangoValidationError):
        profile.clean()

    profile.rights = ["audit", "manage_samples"]
    profile.is_inactive = True
    with pytest.raises(DjangoValidationError):
        profile.clean()
