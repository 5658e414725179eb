# backend/cm_core/audit/models.py
from django.conf import settings
from django.db import models

from cm_core.common.models import TenantOwnedModel


class AuditEvent(TenantOwnedModel):
    """
    Append-only record of a clinic, warehouse, inventory or tenant mutation.

    clinic_id is the acting clinic; NULL for tenant-level work (data repairs, platform admin).
    event_code is "<entity>.<verb>", e.g. "warehouse.created" or "inventory.stock_updated".
    """

    clinic_id = models.UUIDField(null=True, blank=True, db_index=True)

    event_code = models.CharField(max_length=128, db_index=True)
    entity_type = models.CharField(max_length=64)
    entity_id = models.UUIDField()

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_audit_event"
        ordering = ["-occurred_at"]
        indexes = [
            models.Index(fields=["tenant_id", "occurred_at"]),
            models.Index(fields=["tenant_id", "entity_type", "entity_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            raise ValueError("Audit events are append-only.")
        return super().save(*args, **kwargs)
