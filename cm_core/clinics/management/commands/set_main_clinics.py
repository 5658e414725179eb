# cm_core/clinics/management/commands/set_main_clinics.py
from __future__ import annotations

from contextlib import nullcontext

from django.core.management.base import BaseCommand
from django.db import transaction

from cm_core.clinics.models import Clinic


class Command(BaseCommand):
    help = (
        "Repair legacy tenants without a Main Clinic: promote the oldest active clinic to Main "
        "and re-parent the other active clinics under it. Tenants that already have one are skipped."
    )

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Print what would change; do not write.")
        parser.add_argument("--tenant-id", type=str, default=None, help="Optional tenant UUID filter.")

    def handle(self, *args, **opts):
        dry = opts["dry_run"]

        tenant_ids = Clinic.objects.values_list("tenant_id", flat=True).distinct()
        if opts["tenant_id"]:
            tenant_ids = tenant_ids.filter(tenant_id=opts["tenant_id"])

        updated = 0
        skipped = 0

        for tenant_id in list(tenant_ids):
            with transaction.atomic() if not dry else nullcontext():
                clinics = list(Clinic.objects.filter(tenant_id=tenant_id, is_active=True).order_by("created_at", "id"))

                if not clinics:
                    self.stdout.write(self.style.WARNING(f"Tenant {tenant_id}: no active clinics"))
                    skipped += 1
                    continue

                existing = next((c for c in clinics if c.is_main_clinic), None)
                if existing is not None:
                    skipped += 1
                    continue

                main, subs = clinics[0], clinics[1:]
                self.stdout.write(f"Tenant {tenant_id}: main -> {main.name} ({main.code}), {len(subs)} sub clinic(s)")

                if not dry:
                    Clinic.objects.filter(id=main.id).update(is_main_clinic=True, parent_clinic=None)
                    Clinic.objects.filter(id__in=[c.id for c in subs]).update(is_main_clinic=False, parent_clinic=main)
                updated += 1

        prefix = "[dry-run] " if dry else ""
        self.stdout.write(self.style.SUCCESS(f"{prefix}Main clinics set: {updated} tenant(s) updated, {skipped} skipped."))
