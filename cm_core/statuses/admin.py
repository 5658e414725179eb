# backend/cm_core/statuses/admin.py
from django.contrib import admin

from cm_core.statuses.models import AppointmentStatus


@admin.register(AppointmentStatus)
class AppointmentStatusAdmin(admin.ModelAdmin):
    list_display = ("code", "label", "order", "is_default", "is_active", "show_in_calendar", "clinic_id")
    list_filter = ("is_active", "is_default")
    search_fields = ("code", "label")
    ordering = ("clinic_id", "order")
