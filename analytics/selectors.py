"""Read-only rollups over inventory cells, movements and orders.

Money is summed in Python with ``Decimal`` so totals are exact on every
database backend. Missing product prices count as zero.
"""

from collections import defaultdict
from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal
from typing import Optional

from catalog.models import Product
from common.choices import MovementType
from django.db.models import Count, Sum
from django.utils import timezone
from inventory.exceptions import NotFound
from inventory.models import Inventory, StockMovement
from inventory.selectors import low_stock
from orders.models import Order
from warehouses.models import Warehouse

ZERO = Decimal("0")
TOP_WAREHOUSES = 5


def profit_margin(value: Decimal, cost: Decimal) -> Decimal:
    """Percentage margin of ``value`` over ``cost``; zero when there is no value."""

    if not value:
        return Decimal("0.00")
    return ((value - cost) / value * Decimal("100")).quantize(Decimal("0.01"))


def month_start(now: Optional[datetime] = None) -> datetime:
    now = (now or timezone.now()).astimezone(dt_timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _stock_totals(warehouse_id: Optional[int] = None) -> dict[int, dict]:
    totals = defaultdict(lambda: {"products": 0, "value": ZERO, "cost": ZERO})
    qs = Inventory.objects.values_list("warehouse_id", "quantity", "product__unit_price", "product__cost_price")
    if warehouse_id is not None:
        qs = qs.filter(warehouse_id=warehouse_id)
    for wid, quantity, unit_price, cost_price in qs:
        row = totals[wid]
        row["products"] += 1
        row["value"] += Decimal(quantity) * (unit_price or ZERO)
        row["cost"] += Decimal(quantity) * (cost_price or ZERO)
    return totals


def _order_profit(orders) -> tuple[Decimal, Decimal]:
    """Return (revenue, profit) over orders that still count as sales."""

    revenue = ZERO
    profit = ZERO
    rows = orders.exclude(status__in=Order.NON_REVENUE_STATUSES).values_list(
        "quantity", "total_amount", "product__cost_price"
    )
    for quantity, total_amount, cost_price in rows:
        amount = total_amount or ZERO
        revenue += amount
        profit += amount - Decimal(quantity) * (cost_price or ZERO)
    return revenue, profit


def warehouse_stats(warehouse_id: int, *, now: Optional[datetime] = None) -> dict:
    if not Warehouse.objects.filter(id=warehouse_id).exists():
        raise NotFound("Warehouse not found", warehouse_id=warehouse_id)

    stock = _stock_totals(warehouse_id).get(warehouse_id, {"products": 0, "value": ZERO, "cost": ZERO})
    orders = Order.objects.filter(warehouse_id=warehouse_id)
    monthly_revenue, monthly_profit = _order_profit(orders.filter(created_at__gte=month_start(now)))
    return {
        "warehouse_id": warehouse_id,
        "total_products": stock["products"],
        "total_value": stock["value"],
        "total_cost": stock["cost"],
        "total_profit": stock["value"] - stock["cost"],
        "profit_margin": profit_margin(stock["value"], stock["cost"]),
        "low_stock_count": len(low_stock(warehouse_id=warehouse_id)),
        "order_count": orders.count(),
        "monthly_revenue": monthly_revenue,
        "monthly_profit": monthly_profit,
    }


def global_stats() -> dict:
    """Totals across active warehouses plus the five most profitable ones.

    Warehouses rank by the summed profit of their orders, descending, ties
    broken by creation order.
    """

    warehouses = list(Warehouse.objects.active().order_by("id").values_list("id", "name"))
    stock = _stock_totals()

    total_value = ZERO
    total_cost = ZERO
    ranked = []
    for wid, name in warehouses:
        cell_totals = stock.get(wid, {"products": 0, "value": ZERO, "cost": ZERO})
        total_value += cell_totals["value"]
        total_cost += cell_totals["cost"]
        _, order_profit = _order_profit(Order.objects.filter(warehouse_id=wid))
        ranked.append(
            {
                "warehouse_id": wid,
                "name": name,
                "order_profit": order_profit,
                "total_value": cell_totals["value"],
                "profit_margin": profit_margin(cell_totals["value"], cell_totals["cost"]),
            }
        )
    # Stable sort keeps id order among equal profits.
    ranked.sort(key=lambda row: row["order_profit"], reverse=True)

    return {
        "total_warehouses": len(warehouses),
        "total_products": Product.objects.active().count(),
        "total_inventory_value": total_value,
        "total_profit": total_value - total_cost,
        "profit_margin": profit_margin(total_value, total_cost),
        "top_warehouses": ranked[:TOP_WAREHOUSES],
    }


def movement_totals(warehouse_id: Optional[int] = None) -> dict[str, dict]:
    """Signed quantity sum and movement count per movement type.

    Every type is present, zero-filled when it has no movements.
    """

    if warehouse_id is not None and not Warehouse.objects.filter(id=warehouse_id).exists():
        raise NotFound("Warehouse not found", warehouse_id=warehouse_id)
    totals = {value: {"quantity": 0, "count": 0} for value in MovementType.values}
    qs = StockMovement.objects.all()
    if warehouse_id is not None:
        qs = qs.filter(warehouse_id=warehouse_id)
    for row in qs.order_by().values("movement_type").annotate(quantity=Sum("quantity"), count=Count("id")):
        totals[row["movement_type"]] = {"quantity": int(row["quantity"] or 0), "count": row["count"]}
    return totals
