"""DRF permissions backed by per-warehouse grants.

Write views declare which request fields carry warehouse ids through
``warehouse_id_fields``; every listed warehouse must grant write access.
Read views check the ``warehouse_id`` they are scoped to (URL kwarg or
query parameter); unscoped reads are narrowed to readable warehouses by the
view itself.
"""

from common.choices import PermissionLevel
from rest_framework.permissions import SAFE_METHODS, BasePermission

from .selectors import has_warehouse_access


def _authenticated(request):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return None
    return user


def _all_granted(user, warehouse_ids, level) -> bool:
    for raw in warehouse_ids:
        try:
            warehouse_id = int(raw)
        except (TypeError, ValueError):
            # Malformed ids are rejected by the serializer with a 400.
            continue
        if not has_warehouse_access(user=user, warehouse_id=warehouse_id, level=level):
            return False
    return True


class CanReadWarehouse(BasePermission):
    message = "You do not have read access to this warehouse."

    def has_permission(self, request, view) -> bool:
        user = _authenticated(request)
        if user is None:
            return False
        warehouse_ids = []
        kwargs = getattr(view, "kwargs", None) or {}
        if kwargs.get("warehouse_id") is not None:
            warehouse_ids.append(kwargs["warehouse_id"])
        if request.query_params.get("warehouse_id") not in (None, ""):
            warehouse_ids.append(request.query_params.get("warehouse_id"))
        return _all_granted(user, warehouse_ids, PermissionLevel.READ)


class CanWriteWarehouse(BasePermission):
    message = "You do not have write access to this warehouse."

    def has_permission(self, request, view) -> bool:
        user = _authenticated(request)
        if user is None:
            return False
        if request.method in SAFE_METHODS:
            return True
        warehouse_ids = []
        if hasattr(view, "get_permission_warehouse_ids"):
            warehouse_ids = list(view.get_permission_warehouse_ids(request))
        else:
            data = getattr(request, "data", {}) or {}
            for field in getattr(view, "warehouse_id_fields", ("warehouse_id",)):
                if data.get(field) not in (None, ""):
                    warehouse_ids.append(data.get(field))
        return _all_granted(user, warehouse_ids, PermissionLevel.WRITE)


class CanApproveTransfers(BasePermission):
    """Transfer approval is limited to managers and console admins."""

    message = "Only managers and admins may approve transfers."

    def has_permission(self, request, view) -> bool:
        user = _authenticated(request)
        if user is None:
            return False
        return bool(getattr(user, "can_approve", False))


class IsConsoleAdmin(BasePermission):
    """Cross-warehouse views are limited to superusers and the admin role."""

    message = "Only admins may view figures across all warehouses."

    def has_permission(self, request, view) -> bool:
        user = _authenticated(request)
        if user is None:
            return False
        return bool(getattr(user, "is_console_admin", False))
