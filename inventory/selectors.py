"""Selectors for inventory domain (multi-warehouse).

Read-only: nothing here mutates cells, movements or transfers.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import F, IntegerField, Q, Value
from django.db.models.functions import Coalesce

from .exceptions import InvalidArgument
from .models import Inventory, StockMovement, WarehouseTransfer

logger = logging.getLogger("stockledger.inventory")

MAX_PAGE_SIZE = 100


def default_min_stock() -> int:
    return int(getattr(settings, "INVENTORY_DEFAULT_MIN_STOCK", 10))


@dataclass
class ListFilters:
    """Filters and paging for movement and transfer listings."""

    limit: int = 20
    offset: int = 0
    warehouse_id: Optional[int] = None
    product_id: Optional[int] = None
    movement_type: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    # Restricts results to these warehouses; None means no restriction.
    warehouse_ids: Optional[list[int]] = None

    def __post_init__(self):
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise InvalidArgument(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if isinstance(self.offset, bool) or not isinstance(self.offset, int) or self.offset < 0:
            raise InvalidArgument("offset must be a non-negative integer")


@dataclass(frozen=True)
class ChainBreak:
    """First point where a cell's movement history stops adding up.

    ``movement_id`` is None when the movements chain correctly but the last
    ``new_quantity`` disagrees with the stored cell quantity.
    """

    warehouse_id: int
    product_id: int
    movement_id: Optional[int]
    expected: int
    found: int


def _cells():
    return Inventory.objects.select_related("warehouse", "product")


def _cell_row(cell: Inventory) -> dict:
    available = cell.available
    integrity_fault = available < 0
    if integrity_fault:
        logger.warning(
            "inventory.integrity_fault",
            extra={
                "warehouse_id": cell.warehouse_id,
                "product_id": cell.product_id,
                "quantity": cell.quantity,
                "reserved_quantity": cell.reserved_quantity,
            },
        )
    threshold = cell.min_stock_level if cell.min_stock_level is not None else default_min_stock()
    return {
        "id": cell.id,
        "warehouse_id": cell.warehouse_id,
        "warehouse_name": cell.warehouse.name,
        "product_id": cell.product_id,
        "sku": cell.product.sku,
        "product_name": cell.product.name,
        "category": cell.product.category,
        "unit_price": cell.product.unit_price,
        "cost_price": cell.product.cost_price,
        "quantity": int(cell.quantity),
        "reserved_quantity": int(cell.reserved_quantity),
        "available": available,
        "min_stock_level": cell.min_stock_level,
        "max_stock_level": cell.max_stock_level,
        "is_low_stock": int(cell.quantity) <= threshold,
        "is_out_of_stock": cell.is_out_of_stock,
        "integrity_fault": integrity_fault,
        "updated_at": cell.updated_at,
    }


def list_by_warehouse(warehouse_id: int) -> list[dict]:
    qs = _cells().filter(warehouse_id=warehouse_id).order_by("product__name", "product_id")
    return [_cell_row(c) for c in qs]


def _scope(qs, warehouse_id: Optional[int], warehouse_ids: Optional[list[int]]):
    if warehouse_id is not None:
        qs = qs.filter(warehouse_id=warehouse_id)
    if warehouse_ids is not None:
        qs = qs.filter(warehouse_id__in=warehouse_ids)
    return qs


def list_all(warehouse_id: Optional[int] = None, warehouse_ids: Optional[list[int]] = None) -> list[dict]:
    qs = _scope(_cells().order_by("warehouse_id", "product__name", "product_id"), warehouse_id, warehouse_ids)
    return [_cell_row(c) for c in qs]


def low_stock(warehouse_id: Optional[int] = None, warehouse_ids: Optional[list[int]] = None) -> list[dict]:
    """Cells at or below their minimum level (or the default when unset)."""

    qs = (
        _cells()
        .annotate(threshold=Coalesce("min_stock_level", Value(default_min_stock()), output_field=IntegerField()))
        .filter(quantity__lte=F("threshold"))
        .order_by("warehouse_id", "quantity", "product_id")
    )
    qs = _scope(qs, warehouse_id, warehouse_ids)
    return [_cell_row(c) for c in qs]


def out_of_stock(warehouse_id: Optional[int] = None, warehouse_ids: Optional[list[int]] = None) -> list[dict]:
    qs = _scope(_cells().filter(quantity=0).order_by("warehouse_id", "product_id"), warehouse_id, warehouse_ids)
    return [_cell_row(c) for c in qs]


def available_quantity(warehouse_id: int, product_id: int) -> int:
    try:
        cell = Inventory.objects.only("quantity", "reserved_quantity").get(
            warehouse_id=warehouse_id, product_id=product_id
        )
    except Inventory.DoesNotExist:
        return 0
    return cell.available


def warehouse_valuation(warehouse_id: int) -> dict:
    """Stock value at selling price and at cost; unknown prices count as zero."""

    value = Decimal("0")
    cost = Decimal("0")
    qs = Inventory.objects.filter(warehouse_id=warehouse_id).values_list(
        "quantity", "product__unit_price", "product__cost_price"
    )
    for quantity, unit_price, cost_price in qs:
        value += Decimal(quantity) * (unit_price or Decimal("0"))
        cost += Decimal(quantity) * (cost_price or Decimal("0"))
    return {"warehouse_id": warehouse_id, "total_value": value, "total_cost": cost}


def _apply_common(qs, filters: ListFilters):
    if filters.product_id is not None:
        qs = qs.filter(product_id=filters.product_id)
    if filters.date_from is not None:
        qs = qs.filter(created_at__gte=filters.date_from)
    if filters.date_to is not None:
        qs = qs.filter(created_at__lte=filters.date_to)
    return qs


def _page(qs, filters: ListFilters):
    total = qs.count()
    rows = list(qs[filters.offset : filters.offset + filters.limit])
    return rows, total


def list_movements(filters: Optional[ListFilters] = None) -> tuple[list[StockMovement], int]:
    """Newest first. Returns ``(rows, total)`` where total ignores paging."""

    filters = filters or ListFilters()
    qs = StockMovement.objects.select_related("warehouse", "product", "user").order_by("-id")
    qs = _scope(qs, filters.warehouse_id, filters.warehouse_ids)
    if filters.movement_type:
        qs = qs.filter(movement_type=filters.movement_type)
    return _page(_apply_common(qs, filters), filters)


def list_transfers(filters: Optional[ListFilters] = None) -> tuple[list[WarehouseTransfer], int]:
    """Newest first. ``warehouse_id`` matches either end of the transfer."""

    filters = filters or ListFilters()
    qs = WarehouseTransfer.objects.select_related(
        "from_warehouse", "to_warehouse", "product", "requested_by", "approved_by"
    ).order_by("-created_at", "-id")
    if filters.warehouse_id is not None:
        qs = qs.filter(Q(from_warehouse_id=filters.warehouse_id) | Q(to_warehouse_id=filters.warehouse_id))
    if filters.warehouse_ids is not None:
        qs = qs.filter(Q(from_warehouse_id__in=filters.warehouse_ids) | Q(to_warehouse_id__in=filters.warehouse_ids))
    if filters.status:
        qs = qs.filter(status=filters.status)
    return _page(_apply_common(qs, filters), filters)


def verify_movement_chain(warehouse_id: int, product_id: int) -> Optional[ChainBreak]:
    """Walk a cell's movements in id order and return the first broken link, or None."""

    expected = 0
    movements = (
        StockMovement.objects.filter(warehouse_id=warehouse_id, product_id=product_id)
        .order_by("id")
        .values_list("id", "previous_quantity", "new_quantity")
    )
    for movement_id, previous, new in movements.iterator():
        if previous != expected:
            return ChainBreak(warehouse_id, product_id, movement_id, expected, previous)
        expected = new

    stored = (
        Inventory.objects.filter(warehouse_id=warehouse_id, product_id=product_id)
        .values_list("quantity", flat=True)
        .first()
    )
    stored = stored or 0
    if stored != expected:
        return ChainBreak(warehouse_id, product_id, None, expected, stored)
    return None


# EOF
