"""Warehouse mutations: creation, soft delete and access grants."""

import logging

from common.choices import PermissionLevel
from django.db import transaction
from django.shortcuts import get_object_or_404

from .models import Warehouse, WarehousePermission

logger = logging.getLogger("stockledger.warehouses")


def create_warehouse(*, name: str, created_by=None, location: str = "", description: str = "") -> Warehouse:
    warehouse = Warehouse.objects.create(
        name=name.strip(),
        location=location.strip(),
        description=description,
        created_by=created_by,
    )
    logger.info(
        "warehouse.created",
        extra={"warehouse_id": warehouse.id, "user_id": getattr(created_by, "id", None)},
    )
    return warehouse


@transaction.atomic
def deactivate_warehouse(*, warehouse_id: int) -> Warehouse:
    """Soft-delete a warehouse; history rows keep referencing it."""

    warehouse = get_object_or_404(Warehouse.objects.select_for_update(), id=warehouse_id)
    if not warehouse.is_active:
        return warehouse
    warehouse.is_active = False
    warehouse.save(update_fields=["is_active", "updated_at"])
    logger.info("warehouse.deactivated", extra={"warehouse_id": warehouse.id})
    return warehouse


def grant_permission(*, user, warehouse_id: int, level: str) -> WarehousePermission:
    """Create or update the single grant a user holds on a warehouse."""

    if level not in PermissionLevel.values:
        raise ValueError(f"Unknown permission level: {level}")
    perm, _ = WarehousePermission.objects.update_or_create(
        user=user, warehouse_id=warehouse_id, defaults={"level": level}
    )
    return perm


def revoke_permission(*, user, warehouse_id: int) -> int:
    deleted, _ = WarehousePermission.objects.filter(user=user, warehouse_id=warehouse_id).delete()
    return deleted
