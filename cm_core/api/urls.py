# backend/cm_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from cm_core.audit.api.views import AuditEventViewSet
from cm_core.clinics.api.views import ClinicViewSet
from cm_core.inventory.api.views import InventoryItemViewSet
from cm_core.statuses.api.views import AppointmentStatusViewSet
from cm_core.tenants.api.views import TenantViewSet
from cm_core.warehouses.api.views import WarehouseViewSet

router = DefaultRouter()

router.register(r"tenants", TenantViewSet, basename="tenants")
router.register(r"clinics", ClinicViewSet, basename="clinics")
router.register(r"warehouses", WarehouseViewSet, basename="warehouses")
router.register(r"inventory", InventoryItemViewSet, basename="inventory")
router.register(r"appointment-statuses", AppointmentStatusViewSet, basename="appointment-statuses")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    path("auth/login/", TokenObtainPairView.as_view(), name="login"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="refresh"),
    *router.urls,
]
