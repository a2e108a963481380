# audit_core/urls.py

from django.urls import path

from .views import (
    AuditReportListView,
    BulkAssignView,
    EligibleAuditorsView,
    SampleAssignView,
    SampleCompleteView,
    SampleDetailView,
    SampleDraftView,
    SampleListCreateView,
    SampleResetView,
    SampleSkipView,
    SampleStartView,
    SkippedSampleListView,
    WorkflowDefinitionView,
)

app_name = "audit_core"

urlpatterns = [
    # -------------------------------------------------
    # Samples
    # -------------------------------------------------
    path("samples/", SampleListCreateView.as_view(), name="sample-list"),
    path("samples/bulk-assign/", BulkAssignView.as_view(), name="sample-bulk-assign"),
    path("samples/<str:sample_id>/", SampleDetailView.as_view(), name="sample-detail"),

    # -------------------------------------------------
    # Assignment + lifecycle
    # -------------------------------------------------
    path("samples/<str:sample_id>/assign/", SampleAssignView.as_view(), name="sample-assign"),
    path("samples/<str:sample_id>/start/", SampleStartView.as_view(), name="sample-start"),
    path("samples/<str:sample_id>/draft/", SampleDraftView.as_view(), name="sample-draft"),
    path("samples/<str:sample_id>/complete/", SampleCompleteView.as_view(), name="sample-complete"),
    path("samples/<str:sample_id>/skip/", SampleSkipView.as_view(), name="sample-skip"),
    path("samples/<str:sample_id>/reset/", SampleResetView.as_view(), name="sample-reset"),

    # -------------------------------------------------
    # Auditors, records, workflow metadata
    # -------------------------------------------------
    path("auditors/eligible/", EligibleAuditorsView.as_view(), name="auditor-eligible"),
    path("skipped/", SkippedSampleListView.as_view(), name="skipped-list"),
    path("reports/", AuditReportListView.as_view(), name="report-list"),
    path("workflow/", WorkflowDefinitionView.as_view(), name="workflow-definition"),
]
