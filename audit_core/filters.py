# audit_core/filters.py
import django_filters as df

from .models import AuditSample
from .workflows import SAMPLE_STATES, normalize_state


class SampleFilter(df.FilterSet):
    status = df.CharFilter(method="filter_status")
    assigned_to = df.NumberFilter(field_name="assigned_to_id")
    customer_name = df.CharFilter(field_name="customer_name", lookup_expr="icontains")
    ticket_id = df.CharFilter(field_name="ticket_id", lookup_expr="icontains")
    date = df.DateFromToRangeFilter()

    class Meta:
        model = AuditSample
        fields = ["status", "assigned_to", "priority", "form_type", "batch_id", "customer_name", "ticket_id", "date"]

    def filter_status(self, queryset, name, value):
        state = normalize_state(value)
        if state not in SAMPLE_STATES:
            return queryset.none()
        return queryset.filter(status=state)
