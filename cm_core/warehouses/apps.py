from django.apps import AppConfig


class WarehousesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cm_core.warehouses"

    def ready(self) -> None:
        from cm_core.warehouses.events import WarehouseEventBus

        # Process-wide bus; views inject it into WarehouseService.
        self.events = WarehouseEventBus()


def get_event_bus():
    from django.apps import apps

    return apps.get_app_config("warehouses").events
