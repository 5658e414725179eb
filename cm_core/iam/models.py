# backend/cm_core/iam/models.py
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from cm_core.clinics.models import Clinic
from cm_core.common.models import TimeStampedModel
from cm_core.tenants.models import Tenant


class Role(models.Model):
    """Tenant-defined role attached to a clinic membership (e.g. "admin", "pharmacist")."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="roles")

    name = models.CharField(max_length=128)
    code = models.SlugField(max_length=64)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "iam_role"
        constraints = [
            models.UniqueConstraint(fields=["tenant", "code"], name="uq_role_tenant_code"),
        ]

    def __str__(self) -> str:
        return self.code


class UserProfile(TimeStampedModel):
    """
    Ties a Django user to exactly one tenant. Having an active profile is what
    "belongs to the tenant" means before the user has any clinic membership.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cm_profile")
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="user_profiles")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "iam_user_profile"
        indexes = [
            models.Index(fields=["tenant", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.user.get_username()} @ {self.tenant.code}"


class MembershipQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True, user_profile__is_active=True)

    def of_user(self, user_id: int):
        return self.filter(user_profile__user_id=user_id)

    def revoke(self) -> int:
        return self.filter(is_active=True).update(is_active=False, revoked_at=timezone.now())


class ClinicMembership(models.Model):
    """
    A user's access to one branch. Drives scope enforcement and the Main/Sub
    placement of clinics the user creates.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="clinic_memberships")
    clinic = models.ForeignKey(Clinic, on_delete=models.PROTECT, related_name="memberships")
    user_profile = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="memberships")
    role = models.ForeignKey(Role, on_delete=models.PROTECT, related_name="memberships")

    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(auto_now_add=True)
    revoked_at = models.DateTimeField(null=True, blank=True)

    objects = MembershipQuerySet.as_manager()

    class Meta:
        db_table = "iam_clinic_membership"
        constraints = [
            models.UniqueConstraint(fields=["clinic", "user_profile"], name="uq_clinic_user_profile_membership"),
        ]
        indexes = [
            models.Index(fields=["tenant", "clinic", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.user_profile_id} -> {self.clinic_id} ({'active' if self.is_active else 'revoked'})"
