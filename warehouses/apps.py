"""Django app configuration for warehouses."""

from django.apps import AppConfig


class WarehousesConfig(AppConfig):
    """Warehouses and per-warehouse access grants."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "warehouses"
