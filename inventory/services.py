"""Inventory services (multi-warehouse): transactional stock adjustments.

``AdjustmentEngine`` is the only writer of cell quantities. Every quantity
change appends exactly one ``StockMovement`` in the same transaction as the
cell update; reservations change ``reserved_quantity`` only and are not
physical stock events, so they write no movement.
"""

import logging
from typing import Optional

from catalog.models import Product
from common.choices import MovementType
from warehouses.models import Warehouse

from .exceptions import InsufficientStock, InvalidArgument, NotFound
from .ledger import LedgerStore, retry_on_conflict
from .models import Inventory

logger = logging.getLogger("stockledger.inventory")

# Movement types whose quantity sign is fixed.
_SIGN_BY_TYPE = {
    MovementType.INBOUND: 1,
    MovementType.TRANSFER_IN: 1,
    MovementType.OUTBOUND: -1,
    MovementType.TRANSFER_OUT: -1,
}
_TRANSFER_TYPES = (MovementType.TRANSFER_IN, MovementType.TRANSFER_OUT)


def _coerce_id(value, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be an integer id")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{name} must be an integer id")
    if parsed <= 0:
        raise InvalidArgument(f"{name} must be a positive id")
    return parsed


def _coerce_delta(delta) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidArgument("delta must be an integer")
    if delta == 0:
        raise InvalidArgument("delta must be non-zero")
    return delta


def _user_id(user) -> Optional[int]:
    if user is None:
        return None
    return getattr(user, "pk", user)


def require_active(*, warehouse_id: int, product_id: int) -> None:
    """Raise ``NotFound`` unless both the warehouse and the product exist and are active."""

    if not Warehouse.objects.filter(id=warehouse_id, is_active=True).exists():
        raise NotFound("Warehouse not found", warehouse_id=warehouse_id)
    if not Product.objects.filter(id=product_id, is_active=True).exists():
        raise NotFound("Product not found", product_id=product_id)


class AdjustmentEngine:
    """Applies signed quantity deltas and reservation changes to single cells."""

    def __init__(self, store: Optional[LedgerStore] = None):
        self.store = store or LedgerStore()

    @retry_on_conflict
    def adjust(
        self,
        *,
        warehouse_id: int,
        product_id: int,
        delta: int,
        reason: str,
        acting_user=None,
        notes: str = "",
        movement_type: Optional[str] = None,
        transfer=None,
        idempotency_key: Optional[str] = None,
    ) -> Inventory:
        """Apply ``delta`` to the cell quantity and record the movement.

        The movement type defaults from the sign of ``delta``. A negative delta
        may not take the quantity below zero nor below what is reserved
        against open orders. Replaying an ``idempotency_key`` returns the
        current cell without applying the delta again; a key recorded for a
        different movement (cell, delta, type or transfer) is rejected.
        Transfer movement types require ``transfer``.
        """

        warehouse_id = _coerce_id(warehouse_id, "warehouse_id")
        product_id = _coerce_id(product_id, "product_id")
        delta = _coerce_delta(delta)
        if movement_type is None:
            movement_type = MovementType.INBOUND if delta > 0 else MovementType.OUTBOUND
        if movement_type not in MovementType.values:
            raise InvalidArgument(f"Unknown movement type: {movement_type}")
        sign = _SIGN_BY_TYPE.get(MovementType(movement_type))
        if sign is not None and (delta > 0) != (sign > 0):
            raise InvalidArgument(f"delta sign does not match movement type {movement_type}")
        transfer_id = getattr(transfer, "pk", transfer)
        if movement_type in _TRANSFER_TYPES and transfer_id is None:
            raise InvalidArgument(f"{movement_type} movements must belong to a transfer")

        with self.store.atomic():
            require_active(warehouse_id=warehouse_id, product_id=product_id)

            if idempotency_key:
                replayed = self.store.find_movement(idempotency_key)
                if replayed is not None:
                    recorded = (
                        replayed.warehouse_id,
                        replayed.product_id,
                        replayed.quantity,
                        replayed.movement_type,
                        replayed.transfer_id,
                    )
                    if recorded != (warehouse_id, product_id, delta, movement_type, transfer_id):
                        raise InvalidArgument(
                            "Idempotency key reused with a different adjustment", idempotency_key=idempotency_key
                        )
                    logger.info(
                        "inventory.adjust_replayed",
                        extra={"movement_id": replayed.id, "idempotency_key": idempotency_key},
                    )
                    return self.store.get_cell(warehouse_id, product_id)

            # Inbound may create the row; either way it is locked before being read.
            cell = self.store.lock_cell(warehouse_id, product_id, create=delta > 0)

            previous = int(cell.quantity) if cell else 0
            reserved = int(cell.reserved_quantity) if cell else 0
            new_quantity = previous + delta
            if new_quantity < 0:
                raise InsufficientStock(
                    "Insufficient stock",
                    warehouse_id=warehouse_id,
                    product_id=product_id,
                    quantity=previous,
                    requested=-delta,
                )
            if delta < 0 and new_quantity < reserved:
                raise InsufficientStock(
                    "Insufficient available stock; units are reserved",
                    warehouse_id=warehouse_id,
                    product_id=product_id,
                    available=previous - reserved,
                    requested=-delta,
                )

            result = self.store.upsert_cell(warehouse_id, product_id, quantity=new_quantity)
            movement = self.store.append_movement(
                warehouse_id=warehouse_id,
                product_id=product_id,
                movement_type=movement_type,
                quantity=delta,
                previous_quantity=previous,
                new_quantity=new_quantity,
                reason=reason,
                notes=notes,
                user_id=_user_id(acting_user),
                transfer_id=transfer_id,
                idempotency_key=idempotency_key,
            )

        logger.info(
            "inventory.adjusted",
            extra={
                "event": "inventory.adjusted",
                "movement_id": movement.id,
                "warehouse_id": warehouse_id,
                "product_id": product_id,
                "movement_type": str(movement_type),
                "delta": delta,
                "previous_quantity": previous,
                "new_quantity": new_quantity,
                "user_id": _user_id(acting_user),
            },
        )
        return result.cell

    @retry_on_conflict
    def reserve(self, *, warehouse_id: int, product_id: int, delta: int) -> Inventory:
        """Hold (positive delta) or release (negative delta) units against open orders."""

        warehouse_id = _coerce_id(warehouse_id, "warehouse_id")
        product_id = _coerce_id(product_id, "product_id")
        delta = _coerce_delta(delta)

        with self.store.atomic():
            require_active(warehouse_id=warehouse_id, product_id=product_id)
            cell = self.store.lock_cell(warehouse_id, product_id)
            quantity = int(cell.quantity) if cell else 0
            reserved = int(cell.reserved_quantity) if cell else 0
            new_reserved = reserved + delta
            if new_reserved < 0:
                raise InsufficientStock(
                    "Cannot release more than is reserved",
                    warehouse_id=warehouse_id,
                    product_id=product_id,
                    reserved=reserved,
                    requested=-delta,
                )
            if delta > 0 and new_reserved > quantity:
                raise InsufficientStock(
                    "Insufficient available quantity to reserve",
                    warehouse_id=warehouse_id,
                    product_id=product_id,
                    available=quantity - reserved,
                    requested=delta,
                )
            result = self.store.upsert_cell(warehouse_id, product_id, reserved_quantity=new_reserved)

        logger.info(
            "inventory.reserved",
            extra={
                "warehouse_id": warehouse_id,
                "product_id": product_id,
                "delta": delta,
                "reserved_quantity": new_reserved,
            },
        )
        return result.cell

    @retry_on_conflict
    def set_quantity(
        self,
        *,
        warehouse_id: int,
        product_id: int,
        quantity: int,
        acting_user=None,
        reason: str = "stock_count",
        notes: str = "",
    ) -> Inventory:
        """Bring a cell to a counted quantity via a single adjustment movement."""

        warehouse_id = _coerce_id(warehouse_id, "warehouse_id")
        product_id = _coerce_id(product_id, "product_id")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidArgument("quantity must be a non-negative integer")

        with self.store.atomic():
            require_active(warehouse_id=warehouse_id, product_id=product_id)
            cell = self.store.lock_cell(warehouse_id, product_id, create=True)
            delta = quantity - int(cell.quantity)
            if delta == 0:
                return cell
            return self.adjust(
                warehouse_id=warehouse_id,
                product_id=product_id,
                delta=delta,
                reason=reason,
                acting_user=acting_user,
                notes=notes,
                movement_type=MovementType.ADJUSTMENT,
            )

    def configure_cell(
        self,
        *,
        warehouse_id: int,
        product_id: int,
        min_stock_level: Optional[int] = None,
        max_stock_level: Optional[int] = None,
    ) -> Inventory:
        """Set or clear the alert thresholds of a cell, creating it if needed."""

        warehouse_id = _coerce_id(warehouse_id, "warehouse_id")
        product_id = _coerce_id(product_id, "product_id")
        for name, value in (("min_stock_level", min_stock_level), ("max_stock_level", max_stock_level)):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidArgument(f"{name} must be a non-negative integer")
        if min_stock_level is not None and max_stock_level is not None and min_stock_level > max_stock_level:
            raise InvalidArgument("min_stock_level cannot exceed max_stock_level")

        with self.store.atomic():
            require_active(warehouse_id=warehouse_id, product_id=product_id)
            result = self.store.upsert_cell(
                warehouse_id,
                product_id,
                min_stock_level=min_stock_level,
                max_stock_level=max_stock_level,
            )
        return result.cell


# EOF
