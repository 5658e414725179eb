# backend/cm_core/clinics/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.clinics.models import Clinic


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "tenant", "is_main_clinic", "parent_clinic", "is_active", "city", "updated_at")
    list_filter = ("is_active", "is_main_clinic", "country", "tenant")
    search_fields = ("name", "code", "tenant__code", "tenant__name", "city")
    readonly_fields = ("id", "created_at", "updated_at")
    ordering = ("tenant", "-is_main_clinic", "name")
