# backend/cm_core/statuses/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.db import transaction

from cm_core.statuses.models import AppointmentStatus

logger = logging.getLogger(__name__)

DEFAULT_STATUSES = (
    {"code": "scheduled", "label": "Scheduled", "color": "#3b82f6", "icon": "Clock", "order": 1, "show_in_calendar": True, "is_default": True},
    {"code": "confirmed", "label": "Confirmed", "color": "#10b981", "icon": "CheckCircle", "order": 2, "show_in_calendar": True},
    {"code": "in-progress", "label": "In Progress", "color": "#f59e0b", "icon": "Loader2", "order": 3, "show_in_calendar": True},
    {"code": "completed", "label": "Completed", "color": "#10b981", "icon": "CheckCircle", "order": 4, "show_in_calendar": True},
    {"code": "cancelled", "label": "Cancelled", "color": "#ef4444", "icon": "XCircle", "order": 5, "show_in_calendar": False},
    {"code": "no-show", "label": "No Show", "color": "#f59e0b", "icon": "AlertCircle", "order": 6, "show_in_calendar": False},
)


@transaction.atomic
def create_default_statuses(*, tenant_id: UUID, clinic_id: UUID) -> int:
    """
    Seed the default catalogue for one clinic. Existing codes are left untouched.
    Returns the number of statuses created.
    """
    created = 0
    for entry in DEFAULT_STATUSES:
        data = dict(entry)
        code = data.pop("code")
        data.setdefault("is_default", False)
        _, was_created = AppointmentStatus.objects.get_or_create(
            tenant_id=tenant_id,
            clinic_id=clinic_id,
            code=code,
            defaults={**data, "is_active": True},
        )
        created += int(was_created)

    if created:
        logger.info("Seeded %s appointment statuses for clinic=%s", created, clinic_id)
    return created
