# backend/cm_core/clinics/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from cm_core.clinics.models import Clinic, clinic_code_validator
from cm_core.iam.models import ClinicMembership


class ClinicSerializer(serializers.ModelSerializer):
    parent_clinic_id = serializers.UUIDField(read_only=True, allow_null=True)
    hierarchy_level = serializers.CharField(read_only=True)

    class Meta:
        model = Clinic
        fields = [
            "id",
            "tenant_id",
            "name",
            "code",
            "description",
            "street",
            "city",
            "state",
            "zip_code",
            "country",
            "phone",
            "email",
            "website",
            "timezone",
            "currency",
            "language",
            "working_hours",
            "is_main_clinic",
            "parent_clinic_id",
            "hierarchy_level",
            "is_active",
            "deactivated_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ClinicCreateSerializer(serializers.Serializer):
    """
    is_main_clinic / parent_clinic_id are not accepted: placement is decided server-side.
    """
    name = serializers.CharField(min_length=2, max_length=100)
    code = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")

    street = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    state = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    zip_code = serializers.CharField(max_length=16, required=False, allow_blank=True, default="")
    country = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")

    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    website = serializers.URLField(required=False, allow_blank=True, default="")

    timezone = serializers.CharField(max_length=64, required=False, allow_null=True, default=None)
    currency = serializers.CharField(max_length=8, required=False, allow_null=True, default=None)
    language = serializers.CharField(max_length=8, required=False, allow_null=True, default=None)
    working_hours = serializers.JSONField(required=False, default=dict)

    def validate_code(self, value: str) -> str:
        value = (value or "").strip().upper()
        if value:
            clinic_code_validator(value)
        return value


class ClinicUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=100, required=False)
    code = serializers.CharField(max_length=20, required=False)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)

    street = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=128, required=False, allow_blank=True)
    state = serializers.CharField(max_length=128, required=False, allow_blank=True)
    zip_code = serializers.CharField(max_length=16, required=False, allow_blank=True)
    country = serializers.CharField(max_length=64, required=False, allow_blank=True)

    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    website = serializers.URLField(required=False, allow_blank=True)

    timezone = serializers.CharField(max_length=64, required=False)
    currency = serializers.CharField(max_length=8, required=False)
    language = serializers.CharField(max_length=8, required=False)
    working_hours = serializers.JSONField(required=False)

    is_active = serializers.BooleanField(required=False)

    def validate_code(self, value: str) -> str:
        value = value.strip().upper()
        clinic_code_validator(value)
        return value


class ClinicHierarchySerializer(serializers.Serializer):
    main_clinic = ClinicSerializer(allow_null=True)
    sub_clinics = ClinicSerializer(many=True)


class ClinicMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="user_profile.user_id", read_only=True)
    username = serializers.CharField(source="user_profile.user.username", read_only=True)
    email = serializers.CharField(source="user_profile.user.email", read_only=True)
    role = serializers.CharField(source="role.code", read_only=True)

    class Meta:
        model = ClinicMembership
        fields = ["id", "clinic_id", "user_id", "username", "email", "role", "is_active", "joined_at", "revoked_at"]
        read_only_fields = fields


class ClinicMemberAddSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    role = serializers.SlugField(max_length=64)


class ClinicMemberRoleSerializer(serializers.Serializer):
    role = serializers.SlugField(max_length=64)


class ClinicInfoSerializer(serializers.Serializer):
    name = serializers.CharField()
    code = serializers.CharField()
    is_main_clinic = serializers.BooleanField()
    parent_clinic_id = serializers.UUIDField(allow_null=True)
    created_at = serializers.DateTimeField()


class ClinicUserStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_role = serializers.DictField(child=serializers.IntegerField())


class ClinicStatsSerializer(serializers.Serializer):
    clinic_info = ClinicInfoSerializer()
    users = ClinicUserStatsSerializer()
