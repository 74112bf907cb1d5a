"""Order services and the stock hooks that keep inventory in step with orders.

Stock effects per status change:
- created: hold ``quantity`` units (when ORDERS_RESERVE_ON_CREATE is on)
- shipped: release the hold, then take the units out with an outbound movement
- cancelled before shipping: release the hold
- returned: put the units back with an inbound movement

Each change commits together with the order update and its history row.
"""

import logging
from decimal import Decimal
from typing import Optional

from common.choices import MovementType, OrderStatus
from django.conf import settings
from django.db import transaction
from inventory.ledger import retry_on_conflict
from inventory.services import AdjustmentEngine, require_active

from .models import Order, OrderStatusHistory

logger = logging.getLogger("stockledger.orders")


class OrderError(Exception):
    """Invalid order input or status change."""


def _engine(engine: Optional[AdjustmentEngine]) -> AdjustmentEngine:
    return engine or AdjustmentEngine()


@retry_on_conflict
def create_order(
    *,
    platform: str,
    platform_order_id: str,
    customer_name: str,
    warehouse_id: int,
    product_id: int,
    quantity: int,
    unit_price: Decimal,
    total_amount: Optional[Decimal] = None,
    created_by=None,
    engine: Optional[AdjustmentEngine] = None,
    **details,
) -> Order:
    """Record an order and hold its stock.

    ``total_amount`` defaults to ``unit_price * quantity``. Raises
    ``InsufficientStock`` (nothing is saved) when the hold cannot be placed.
    """

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise OrderError("Order quantity must be a positive integer")
    unit_price = Decimal(str(unit_price))
    if unit_price < 0:
        raise OrderError("Unit price cannot be negative")
    if total_amount is None:
        total_amount = unit_price * Decimal(quantity)
    total_amount = Decimal(str(total_amount))

    with transaction.atomic():
        require_active(warehouse_id=warehouse_id, product_id=product_id)
        order = Order.objects.create(
            platform=platform,
            platform_order_id=platform_order_id,
            customer_name=customer_name,
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=total_amount,
            created_by=created_by,
            **details,
        )
        OrderStatusHistory.objects.create(order=order, status=order.status, notes="Order created")
        if getattr(settings, "ORDERS_RESERVE_ON_CREATE", True):
            _engine(engine).reserve(warehouse_id=warehouse_id, product_id=product_id, delta=quantity)
            order.stock_reserved = True
            order.save(update_fields=["stock_reserved", "updated_at"])

    logger.info(
        "order.created",
        extra={
            "order_id": order.id,
            "warehouse_id": warehouse_id,
            "product_id": product_id,
            "quantity": quantity,
            "stock_reserved": order.stock_reserved,
        },
    )
    return order


def _release_hold(order: Order, engine: AdjustmentEngine) -> None:
    if not order.stock_reserved:
        return
    engine.reserve(warehouse_id=order.warehouse_id, product_id=order.product_id, delta=-int(order.quantity))
    order.stock_reserved = False


@retry_on_conflict
def update_order_status(
    *,
    order_id: int,
    status: str,
    notes: str = "",
    acting_user=None,
    engine: Optional[AdjustmentEngine] = None,
) -> Order:
    if status not in OrderStatus.values:
        raise OrderError(f"Unknown order status: {status}")
    engine = _engine(engine)

    with transaction.atomic():
        try:
            order = Order.objects.select_for_update().get(id=order_id)
        except Order.DoesNotExist:
            raise OrderError("Order not found")
        if not order.can_transition_to(status):
            raise OrderError(f"Cannot move order from {order.status} to {status}")
        previous = str(order.status)

        if status == Order.STATUS_SHIPPED:
            _release_hold(order, engine)
            engine.adjust(
                warehouse_id=order.warehouse_id,
                product_id=order.product_id,
                delta=-int(order.quantity),
                reason="order_shipped",
                acting_user=acting_user,
                notes=f"Order #{order.id} ({order.platform}:{order.platform_order_id})",
                movement_type=MovementType.OUTBOUND,
                idempotency_key=f"order:{order.id}:shipped",
            )
        elif status == Order.STATUS_CANCELLED:
            _release_hold(order, engine)
        elif status == Order.STATUS_RETURNED:
            engine.adjust(
                warehouse_id=order.warehouse_id,
                product_id=order.product_id,
                delta=int(order.quantity),
                reason="order_returned",
                acting_user=acting_user,
                notes=f"Order #{order.id} ({order.platform}:{order.platform_order_id})",
                movement_type=MovementType.INBOUND,
                idempotency_key=f"order:{order.id}:returned",
            )

        order.status = status
        order.save(update_fields=["status", "stock_reserved", "updated_at"])
        OrderStatusHistory.objects.create(order=order, status=status, notes=notes or f"Status updated to {status}")

    logger.info(
        "order.status_changed",
        extra={
            "order_id": order.id,
            "status_from": previous,
            "status_to": status,
            "user_id": getattr(acting_user, "pk", acting_user),
        },
    )
    return order
