# backend/cm_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.iam.models import ClinicMembership, Role, UserProfile


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "tenant", "is_active")
    list_filter = ("tenant", "is_active")
    search_fields = ("code", "name")
    ordering = ("tenant", "code")


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "tenant", "is_active", "created_at")
    list_filter = ("tenant", "is_active")
    search_fields = ("user__username", "user__email")
    ordering = ("-created_at",)


@admin.register(ClinicMembership)
class ClinicMembershipAdmin(admin.ModelAdmin):
    list_display = ("tenant", "clinic", "user_profile", "role", "is_active")
    list_filter = ("tenant", "role", "is_active")
    search_fields = ("clinic__name", "clinic__code", "user_profile__user__username")
