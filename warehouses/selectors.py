"""Read helpers for warehouses and access grants."""

from typing import Optional

from common.choices import PermissionLevel
from django.db.models import QuerySet

from .models import Warehouse, WarehousePermission

_LEVEL_RANK = {
    PermissionLevel.READ: 1,
    PermissionLevel.WRITE: 2,
    PermissionLevel.ADMIN: 3,
}


def list_warehouses(*, include_inactive: bool = False) -> QuerySet[Warehouse]:
    qs = Warehouse.objects.all()
    if not include_inactive:
        qs = qs.active()
    return qs.order_by("id")


def permission_level(*, user_id: int, warehouse_id: int) -> Optional[str]:
    """Return the granted level for the pair, or None when no grant exists."""

    return (
        WarehousePermission.objects.filter(user_id=user_id, warehouse_id=warehouse_id)
        .values_list("level", flat=True)
        .first()
    )


def has_warehouse_access(*, user, warehouse_id: int, level: str = PermissionLevel.READ) -> bool:
    """Check that ``user`` holds at least ``level`` on the warehouse.

    Superusers and console admins pass every check.
    """

    if user is None or not getattr(user, "is_authenticated", False):
        return False
    if getattr(user, "is_console_admin", False):
        return True
    granted = permission_level(user_id=user.id, warehouse_id=warehouse_id)
    if granted is None:
        return False
    return _LEVEL_RANK[PermissionLevel(granted)] >= _LEVEL_RANK[PermissionLevel(level)]


def readable_warehouse_ids(*, user) -> Optional[list[int]]:
    """Ids of the warehouses ``user`` may read, or None when all are readable.

    Every grant level includes read access.
    """

    if getattr(user, "is_console_admin", False):
        return None
    grants = WarehousePermission.objects.filter(user_id=user.id).order_by("warehouse_id")
    return list(grants.values_list("warehouse_id", flat=True))
