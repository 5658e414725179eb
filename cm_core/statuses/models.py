# backend/cm_core/statuses/models.py
from __future__ import annotations

from django.core.validators import MinValueValidator, RegexValidator
from django.db import models

from cm_core.common.models import ScopedModel

hex_color_validator = RegexValidator(
    regex=r"^#[0-9A-Fa-f]{6}$",
    message="Color must be a valid hex color code",
)


class AppointmentStatus(ScopedModel):
    """
    Per-clinic appointment status catalogue (scheduled, confirmed, ...).
    """

    code = models.CharField(max_length=64)
    label = models.CharField(max_length=100)
    color = models.CharField(max_length=7, validators=[hex_color_validator])
    icon = models.CharField(max_length=64, default="Clock")
    description = models.CharField(max_length=255, blank=True, default="")

    order = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    show_in_calendar = models.BooleanField(default=False)

    class Meta:
        db_table = "statuses_appointment_status"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "clinic_id", "code"], name="uq_appointment_status_code"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "clinic_id", "order"]),
        ]

    def __str__(self) -> str:
        return f"{self.label} ({self.code})"
