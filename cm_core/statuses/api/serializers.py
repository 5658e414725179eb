# backend/cm_core/statuses/api/serializers.py
from rest_framework import serializers

from cm_core.statuses.models import AppointmentStatus


class AppointmentStatusSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppointmentStatus
        fields = [
            "id",
            "tenant_id",
            "clinic_id",
            "code",
            "label",
            "color",
            "icon",
            "description",
            "order",
            "is_default",
            "is_active",
            "show_in_calendar",
        ]
        read_only_fields = fields
