# backend/cm_core/statuses/management/commands/seed_appointment_statuses.py
from django.core.management.base import BaseCommand

from cm_core.clinics.models import Clinic
from cm_core.statuses.services import create_default_statuses


class Command(BaseCommand):
    help = "Create the default appointment statuses for every active clinic (idempotent)."

    def handle(self, *args, **options):
        clinics = Clinic.objects.filter(is_active=True).order_by("created_at")
        if not clinics.exists():
            self.stdout.write(self.style.WARNING("No active clinics found."))
            return

        created = 0
        for clinic in clinics:
            created += create_default_statuses(tenant_id=clinic.tenant_id, clinic_id=clinic.id)

        self.stdout.write(self.style.SUCCESS(f"Default statuses seeded: {created} created."))
