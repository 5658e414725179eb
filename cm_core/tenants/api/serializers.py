# backend/cm_core/tenants/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from cm_core.clinics.selectors import main_clinic_for_tenant
from cm_core.tenants.models import Tenant, TenantStatus


class TenantSerializer(serializers.ModelSerializer):
    clinic_count = serializers.IntegerField(read_only=True, default=0)
    main_clinic_id = serializers.SerializerMethodField()

    class Meta:
        model = Tenant
        fields = ["id", "name", "code", "status", "metadata", "clinic_count", "main_clinic_id", "created_at", "updated_at"]
        read_only_fields = fields

    def get_main_clinic_id(self, obj) -> str | None:
        main = main_clinic_for_tenant(tenant_id=obj.id)
        return str(main.id) if main else None


class TenantCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    code = serializers.SlugField(max_length=64)
    status = serializers.ChoiceField(choices=TenantStatus.choices, required=False, default=TenantStatus.ACTIVE)
    metadata = serializers.DictField(required=False, default=dict)


class TenantStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TenantStatus.choices)


class TenantMetadataUpdateSerializer(serializers.Serializer):
    metadata = serializers.DictField()
    replace = serializers.BooleanField(required=False, default=False)
