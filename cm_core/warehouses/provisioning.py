# backend/cm_core/warehouses/provisioning.py
from __future__ import annotations

import logging
from typing import Optional, Tuple
from uuid import UUID

from django.conf import settings
from django.db import transaction

from cm_core.clinics.models import Clinic
from cm_core.warehouses.events import WarehouseEventBus
from cm_core.warehouses.models import Warehouse, WarehouseStatus, WarehouseType
from cm_core.warehouses.selectors import main_warehouse_for_branch
from cm_core.warehouses.services import WarehouseService

logger = logging.getLogger(__name__)


def main_warehouse_name(branch: Clinic) -> str:
    suffix = getattr(settings, "CM_MAIN_WAREHOUSE_SUFFIX", " - Main Warehouse")
    return f"{branch.name}{suffix}"


def ensure_main_warehouse(
    *,
    tenant_id: UUID,
    branch: Clinic,
    events: Optional[WarehouseEventBus] = None,
) -> Tuple[Warehouse, bool]:
    """
    Return the branch's alive MAIN warehouse, creating "<branch> - Main Warehouse" if none exists.
    Safe to call repeatedly: at most one MAIN warehouse per branch ever results.
    SUB warehouses are never created here.
    """
    with transaction.atomic():
        Clinic.objects.select_for_update().filter(id=branch.id, tenant_id=tenant_id).first()

        existing = main_warehouse_for_branch(tenant_id=tenant_id, branch_id=branch.id)
        if existing is not None:
            return existing, False

        warehouse = WarehouseService(events=events).create(
            tenant_id=tenant_id,
            name=main_warehouse_name(branch),
            type=WarehouseType.MAIN,
            status=WarehouseStatus.ACTIVE,
            assigned_branches=[branch.id],
            clinic_id=branch.id,
        )
    return warehouse, True


def provision_branch_warehouse(
    *,
    tenant_id: UUID,
    branch: Clinic,
    events: Optional[WarehouseEventBus] = None,
) -> Optional[Warehouse]:
    """
    Best-effort onboarding step for a new branch.

    Runs in its own savepoint; any failure is logged and swallowed so the clinic that
    triggered it stays committed. Safe to re-run (see ensure_main_warehouse).
    """
    try:
        warehouse, created = ensure_main_warehouse(tenant_id=tenant_id, branch=branch, events=events)
    except Exception:
        logger.exception("Default MAIN warehouse provisioning failed for branch=%s tenant=%s", branch.id, tenant_id)
        return None

    if created:
        logger.info("Provisioned MAIN warehouse %s for branch %s", warehouse.id, branch.id)
    return warehouse
