"""Warehouse models.

Warehouses are deactivated rather than deleted so that inventory rows,
movements and transfers keep referential integrity.
"""

from common.choices import PermissionLevel
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class WarehouseQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)


class Warehouse(TimeStampedModel):
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    location = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )

    objects = WarehouseQuerySet.as_manager()

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class WarehousePermission(TimeStampedModel):
    """Access grant of a user on a warehouse.

    The core never interprets these rows itself; they back the authorization
    check performed before any stock mutation is invoked.
    """

    LEVEL_READ = PermissionLevel.READ
    LEVEL_WRITE = PermissionLevel.WRITE
    LEVEL_ADMIN = PermissionLevel.ADMIN
    LEVEL_CHOICES = PermissionLevel.choices

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="warehouse_permissions", on_delete=models.CASCADE)
    warehouse = models.ForeignKey(Warehouse, related_name="permissions", on_delete=models.CASCADE)
    level = models.CharField(max_length=8, choices=LEVEL_CHOICES, default=LEVEL_READ)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "warehouse"], name="unique_permission_per_user_warehouse"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user_id}@{self.warehouse_id}:{self.level}"
