from decimal import Decimal

from common.choices import OrderStatus, PaymentStatus, Platform
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Order(TimeStampedModel):
    """Marketplace or website order fulfilled from a single warehouse.

    Amounts are snapshots taken when the order is recorded; analytics rely on
    ``total_amount`` rather than current product prices.
    """

    STATUS_PENDING = OrderStatus.PENDING
    STATUS_PROCESSING = OrderStatus.PROCESSING
    STATUS_SHIPPED = OrderStatus.SHIPPED
    STATUS_DELIVERED = OrderStatus.DELIVERED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_RETURNED = OrderStatus.RETURNED
    STATUS_CHOICES = OrderStatus.choices

    TRANSITIONS = {
        STATUS_PENDING: {STATUS_PROCESSING, STATUS_SHIPPED, STATUS_CANCELLED},
        STATUS_PROCESSING: {STATUS_SHIPPED, STATUS_CANCELLED},
        STATUS_SHIPPED: {STATUS_DELIVERED, STATUS_RETURNED},
        STATUS_DELIVERED: {STATUS_RETURNED},
        STATUS_CANCELLED: set(),
        STATUS_RETURNED: set(),
    }

    # Excluded from revenue and profit.
    NON_REVENUE_STATUSES = (STATUS_CANCELLED, STATUS_RETURNED)

    platform = models.CharField(max_length=16, choices=Platform.choices, db_index=True)
    platform_order_id = models.CharField(max_length=64)
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField(null=True, blank=True)
    customer_phone = models.CharField(max_length=32, blank=True)
    customer_address = models.TextField(blank=True)
    warehouse = models.ForeignKey("warehouses.Warehouse", related_name="orders", on_delete=models.PROTECT)
    product = models.ForeignKey("catalog.Product", related_name="orders", on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment_method = models.CharField(max_length=64, blank=True)
    transaction_id = models.CharField(max_length=128, blank=True)
    shipping_address = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=128, blank=True)
    notes = models.TextField(blank=True)
    # True while ``quantity`` units are held in the warehouse for this order.
    stock_reserved = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["warehouse", "status", "created_at"], name="order_wh_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="order_quantity_positive", condition=models.Q(quantity__gt=0)),
            models.CheckConstraint(name="order_unit_price_non_negative", condition=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total_amount__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} {self.platform}:{self.platform_order_id} status={self.status}"

    def can_transition_to(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())


class OrderStatusHistory(models.Model):
    """Timeline entry written on creation and on every status change."""

    order = models.ForeignKey(Order, related_name="status_history", on_delete=models.CASCADE)
    status = models.CharField(max_length=16, choices=OrderStatus.choices)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "order status history"

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.order_id} -> {self.status}"
