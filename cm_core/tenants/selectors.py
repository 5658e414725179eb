# backend/cm_core/tenants/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from cm_core.tenants.models import Tenant


def tenant_qs(*, status: Optional[str] = None, q: Optional[str] = None) -> QuerySet[Tenant]:
    """Tenants with clinic_count (active clinics only), newest first."""
    qs = Tenant.objects.annotate(clinic_count=Count("clinics", filter=Q(clinics__is_active=True)))
    if status:
        qs = qs.filter(status=status)
    qv = (q or "").strip()
    if qv:
        qs = qs.filter(Q(name__icontains=qv) | Q(code__icontains=qv))
    return qs.order_by("-created_at")


def get_tenant(*, tenant_id: UUID) -> Tenant:
    return tenant_qs().get(id=tenant_id)
