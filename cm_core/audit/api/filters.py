# backend/cm_core/audit/api/filters.py
import django_filters as df

from cm_core.audit.models import AuditEvent


class AuditEventFilter(df.FilterSet):
    entity_type = df.CharFilter()
    entity_id = df.UUIDFilter()
    event_code = df.CharFilter()
    event_prefix = df.CharFilter(field_name="event_code", lookup_expr="startswith")
    clinic_id = df.UUIDFilter()
    since = df.IsoDateTimeFilter(field_name="occurred_at", lookup_expr="gte")
    until = df.IsoDateTimeFilter(field_name="occurred_at", lookup_expr="lt")

    class Meta:
        model = AuditEvent
        fields = ["entity_type", "entity_id", "event_code", "clinic_id"]
