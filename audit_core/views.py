# audit_core/views.py
from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import SampleError
from .filters import SampleFilter
from .models import AuditDraft, AuditReport, AuditSample, SkippedSample
from .permissions import IsAssigneeOrManager, IsSampleManager, is_sample_manager
from .serializers import (
    AnswersSerializer,
    AssignSerializer,
    AuditDraftSerializer,
    AuditorSerializer,
    AuditReportSerializer,
    AuditSampleSerializer,
    BulkAssignSerializer,
    DeletedSampleSerializer,
    SampleCreateSerializer,
    SkippedSampleSerializer,
    SkipSerializer,
)
from .services.assignment import AssignmentEngine
from .services.directory import AuditorDirectory
from .services.lifecycle import LifecycleController
from .services.store import SampleStore
from .workflows import SKIPPED, normalize_state, workflow_definition

logger = logging.getLogger(__name__)


# ===============================================================
# Error mapping
# ===============================================================

ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_state": status.HTTP_409_CONFLICT,
    "not_eligible": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "persistence_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


class SampleAPIView(APIView):
    """
    Base view: engine errors become JSON responses instead of 500s.
    """

    permission_classes = [IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, SampleError):
            code = ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)
            if code >= 500:
                logger.error("Sample engine failure: %s", exc.message)
            return Response(exc.as_dict(), status=code)
        return super().handle_exception(exc)

    def lifecycle(self) -> LifecycleController:
        return LifecycleController()

    def engine(self) -> AssignmentEngine:
        return AssignmentEngine()

    def get_sample(self, sample_id: str) -> AuditSample:
        sample = SampleStore().get(sample_id)
        self.check_object_permissions(self.request, sample)
        return sample


# ===============================================================
# Samples
# ===============================================================

class SampleListCreateView(SampleAPIView, generics.ListAPIView):
    """
    GET  → samples in insertion order (skipped only with ?status=skipped)
    POST → create an available sample (managers)
    """

    serializer_class = AuditSampleSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = SampleFilter

    def get_queryset(self):
        qs = AuditSample.objects.select_related("assigned_to").order_by("id")
        requested = normalize_state(self.request.query_params.get("status") or "")
        if requested == SKIPPED:
            if not is_sample_manager(self.request.user):
                raise PermissionDenied("Skipped samples are visible to sample managers only.")
            return qs
        return qs.exclude(status=SKIPPED)

    @extend_schema(tags=["Samples"], request=SampleCreateSerializer, responses=AuditSampleSerializer)
    def post(self, request):
        if not is_sample_manager(request.user):
            raise PermissionDenied(IsSampleManager.message)

        ser = SampleCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        sample = self.lifecycle().create_sample(created_by=request.user, **ser.validated_data)
        return Response(AuditSampleSerializer(sample).data, status=status.HTTP_201_CREATED)


class SampleDetailView(SampleAPIView):
    """
    GET    → one sample
    DELETE → permanent delete with provenance (managers)
    """

    @extend_schema(tags=["Samples"], responses=AuditSampleSerializer)
    def get(self, request, sample_id: str):
        sample = self.get_sample(sample_id)
        if sample.status == SKIPPED and not is_sample_manager(request.user):
            raise PermissionDenied("Skipped samples are visible to sample managers only.")
        return Response(AuditSampleSerializer(sample).data)

    @extend_schema(tags=["Samples"], responses=DeletedSampleSerializer)
    def delete(self, request, sample_id: str):
        if not is_sample_manager(request.user):
            raise PermissionDenied(IsSampleManager.message)
        record = self.lifecycle().permanent_delete(sample_id, deleted_by=request.user)
        return Response(DeletedSampleSerializer(record).data)


# ===============================================================
# Assignment (managers)
# ===============================================================

class SampleAssignView(SampleAPIView):
    """
    POST → assign one available sample

    Payload:
      {"auditor_id": 7}
      {"random": true, "exclude_self": true}
    """

    permission_classes = [IsAuthenticated, IsSampleManager]

    @extend_schema(tags=["Assignment"], request=AssignSerializer, responses=AuditSampleSerializer)
    def post(self, request, sample_id: str):
        ser = AssignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        engine = self.engine()
        if data.get("auditor_id") is not None:
            sample = engine.assign_one(sample_id, data["auditor_id"], assigned_by=request.user)
        else:
            excluding = request.user.pk if data.get("exclude_self") else None
            sample = engine.assign_random(sample_id, excluding=excluding, assigned_by=request.user)

        return Response(AuditSampleSerializer(sample).data)


class BulkAssignView(SampleAPIView):
    """
    POST → distribute available samples across eligible auditors

    Payload:
      {"sample_ids": ["AS-000001", "AS-000002"], "auditor_ids": [3, 4]}

    Per-item failures are reported in "errors"; the response is 200
    whenever the request itself is well formed.
    """

    permission_classes = [IsAuthenticated, IsSampleManager]

    @extend_schema(tags=["Assignment"], request=BulkAssignSerializer)
    def post(self, request):
        ser = BulkAssignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        result = self.engine().bulk_assign(
            data["sample_ids"],
            data["auditor_ids"],
            strategy=data.get("strategy"),
            assigned_by=request.user,
        )
        return Response(result.as_dict())


class EligibleAuditorsView(SampleAPIView):
    """
    GET → eligible auditors with their current workload (?exclude_self=1)
    """

    permission_classes = [IsAuthenticated, IsSampleManager]

    @extend_schema(tags=["Assignment"], responses=AuditorSerializer(many=True))
    def get(self, request):
        exclude_self = str(request.query_params.get("exclude_self", "")).lower() in {"1", "true", "yes"}
        auditors = AuditorDirectory().list_eligible(excluding=request.user.pk if exclude_self else None)
        return Response(AuditorSerializer(auditors, many=True).data)


# ===============================================================
# Lifecycle (assignee)
# ===============================================================

class SampleStartView(SampleAPIView):
    @extend_schema(tags=["Lifecycle"])
    def post(self, request, sample_id: str):
        result = self.lifecycle().start(sample_id, request.user)
        return Response(
            {
                "sample": AuditSampleSerializer(result.sample).data,
                "answers": result.answers,
                "remarks": result.remarks,
                "form_found": result.form is not None,
                "resumed": result.resumed,
                "warnings": result.warnings,
            }
        )


class SampleDraftView(SampleAPIView):
    """
    GET  → saved draft for the sample
    POST → save or overwrite the draft
    """

    permission_classes = [IsAuthenticated, IsAssigneeOrManager]

    @extend_schema(tags=["Lifecycle"], responses=AuditDraftSerializer)
    def get(self, request, sample_id: str):
        self.get_sample(sample_id)
        draft = AuditDraft.objects.filter(sample_id=sample_id).first()
        if draft is None:
            return Response({"error": "not_found", "detail": "No draft saved for this sample."}, status=status.HTTP_404_NOT_FOUND)
        return Response(AuditDraftSerializer(draft).data)

    @extend_schema(tags=["Lifecycle"], request=AnswersSerializer, responses=AuditDraftSerializer)
    def post(self, request, sample_id: str):
        self.get_sample(sample_id)
        ser = AnswersSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        draft = self.lifecycle().save_draft(
            sample_id,
            ser.validated_data["answers"],
            ser.validated_data["remarks"],
            saved_by=request.user,
        )
        return Response(AuditDraftSerializer(draft).data)


class SampleCompleteView(SampleAPIView):
    permission_classes = [IsAuthenticated, IsAssigneeOrManager]

    @extend_schema(tags=["Lifecycle"], request=AnswersSerializer, responses=AuditReportSerializer)
    def post(self, request, sample_id: str):
        self.get_sample(sample_id)
        ser = AnswersSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        report = self.lifecycle().complete(
            sample_id,
            ser.validated_data["answers"],
            ser.validated_data["remarks"],
            completed_by=request.user,
        )
        return Response(AuditReportSerializer(report).data, status=status.HTTP_201_CREATED)


class SampleSkipView(SampleAPIView):
    @extend_schema(tags=["Lifecycle"], request=SkipSerializer, responses=SkippedSampleSerializer)
    def post(self, request, sample_id: str):
        ser = SkipSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        record = self.lifecycle().skip(sample_id, request.user, ser.validated_data["reason"])
        return Response(SkippedSampleSerializer(record).data, status=status.HTTP_201_CREATED)


class SampleResetView(SampleAPIView):
    permission_classes = [IsAuthenticated, IsSampleManager]

    @extend_schema(tags=["Lifecycle"], request=None, responses=AuditSampleSerializer)
    def post(self, request, sample_id: str):
        sample = self.lifecycle().reset(sample_id, reset_by=request.user)
        return Response(AuditSampleSerializer(sample).data)


# ===============================================================
# Records (managers)
# ===============================================================

class SkippedSampleListView(SampleAPIView, generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsSampleManager]
    serializer_class = SkippedSampleSerializer

    def get_queryset(self):
        qs = SkippedSample.objects.all()
        state = self.request.query_params.get("status")
        if state:
            qs = qs.filter(status=state)
        return qs


class AuditReportListView(SampleAPIView, generics.ListAPIView):
    """
    Managers see every report; auditors see their own.
    """

    serializer_class = AuditReportSerializer

    def get_queryset(self):
        qs = AuditReport.objects.select_related("auditor")
        if not is_sample_manager(self.request.user):
            qs = qs.filter(auditor=self.request.user)
        audit_id = self.request.query_params.get("audit_id")
        if audit_id:
            qs = qs.filter(audit_id=audit_id)
        return qs


# ===============================================================
# Workflow definition (static metadata)
# ===============================================================

class WorkflowDefinitionView(SampleAPIView):
    @extend_schema(tags=["Workflows"])
    def get(self, request):
        return Response(workflow_definition())
