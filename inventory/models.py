"""Inventory models (multi-warehouse).

One ``Inventory`` row (a cell) per (warehouse, product) pair, an append-only
``StockMovement`` log recording every quantity change, and
``WarehouseTransfer`` records driving inter-warehouse moves.
"""

from common.choices import MovementType, TransferStatus
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Inventory(TimeStampedModel):
    warehouse = models.ForeignKey("warehouses.Warehouse", related_name="inventory", on_delete=models.PROTECT)
    product = models.ForeignKey("catalog.Product", related_name="inventory", on_delete=models.PROTECT)
    quantity = models.IntegerField(default=0)
    reserved_quantity = models.IntegerField(default=0)
    # Alert thresholds; an unset minimum falls back to INVENTORY_DEFAULT_MIN_STOCK.
    min_stock_level = models.PositiveIntegerField(null=True, blank=True)
    max_stock_level = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "inventory"
        ordering = ["warehouse_id", "product_id"]
        constraints = [
            models.UniqueConstraint(fields=["warehouse", "product"], name="unique_inventory_per_warehouse_product"),
            models.CheckConstraint(name="inventory_quantity_non_negative", condition=models.Q(quantity__gte=0)),
            models.CheckConstraint(
                name="inventory_reserved_non_negative", condition=models.Q(reserved_quantity__gte=0)
            ),
            models.CheckConstraint(
                name="inventory_reserved_le_quantity",
                condition=models.Q(reserved_quantity__lte=models.F("quantity")),
            ),
            models.CheckConstraint(
                name="inventory_min_le_max",
                condition=models.Q(min_stock_level__isnull=True)
                | models.Q(max_stock_level__isnull=True)
                | models.Q(min_stock_level__lte=models.F("max_stock_level")),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Inventory<{self.warehouse_id}:{self.product_id}> q={self.quantity} r={self.reserved_quantity}"

    @property
    def available(self) -> int:
        return int(self.quantity) - int(self.reserved_quantity)

    @property
    def is_out_of_stock(self) -> bool:
        return int(self.quantity) == 0


class StockMovement(models.Model):
    """Immutable audit record of one quantity change on a cell."""

    TYPE_INBOUND = MovementType.INBOUND
    TYPE_OUTBOUND = MovementType.OUTBOUND
    TYPE_ADJUSTMENT = MovementType.ADJUSTMENT
    TYPE_TRANSFER_IN = MovementType.TRANSFER_IN
    TYPE_TRANSFER_OUT = MovementType.TRANSFER_OUT
    TYPE_CHOICES = MovementType.choices

    warehouse = models.ForeignKey("warehouses.Warehouse", related_name="movements", on_delete=models.PROTECT)
    product = models.ForeignKey("catalog.Product", related_name="movements", on_delete=models.PROTECT)
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES, db_index=True)
    quantity = models.IntegerField()  # signed: +inbound, -outbound
    previous_quantity = models.IntegerField()
    new_quantity = models.IntegerField()
    reason = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="stock_movements", on_delete=models.SET_NULL
    )
    transfer = models.ForeignKey(
        "inventory.WarehouseTransfer", null=True, blank=True, related_name="movements", on_delete=models.PROTECT
    )
    idempotency_key = models.CharField(max_length=128, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-id"]
        constraints = [
            models.CheckConstraint(name="movement_non_zero", condition=~models.Q(quantity=0)),
            models.CheckConstraint(name="movement_new_non_negative", condition=models.Q(new_quantity__gte=0)),
            models.CheckConstraint(
                name="movement_quantities_chain",
                condition=models.Q(new_quantity=models.F("previous_quantity") + models.F("quantity")),
            ),
            models.UniqueConstraint(
                fields=["idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="unique_movement_idempotency_key",
            ),
        ]
        indexes = [
            models.Index(fields=["warehouse", "product", "id"], name="movement_cell_seq_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity} @ {self.warehouse_id}:{self.product_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Stock movements are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock movements are append-only")


class WarehouseTransfer(TimeStampedModel):
    """Request to relocate stock between two warehouses.

    Stock only moves on the transition to ``completed``; earlier states are
    pure intent records.
    """

    STATUS_PENDING = TransferStatus.PENDING
    STATUS_APPROVED = TransferStatus.APPROVED
    STATUS_COMPLETED = TransferStatus.COMPLETED
    STATUS_CANCELLED = TransferStatus.CANCELLED
    STATUS_CHOICES = TransferStatus.choices

    TRANSITIONS = {
        STATUS_PENDING: {STATUS_APPROVED, STATUS_CANCELLED},
        STATUS_APPROVED: {STATUS_COMPLETED, STATUS_CANCELLED},
        STATUS_COMPLETED: set(),
        STATUS_CANCELLED: set(),
    }

    from_warehouse = models.ForeignKey(
        "warehouses.Warehouse", related_name="outgoing_transfers", on_delete=models.PROTECT
    )
    to_warehouse = models.ForeignKey("warehouses.Warehouse", related_name="incoming_transfers", on_delete=models.PROTECT)
    product = models.ForeignKey("catalog.Product", related_name="transfers", on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="requested_transfers", on_delete=models.PROTECT
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="approved_transfers",
        on_delete=models.PROTECT,
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="transfer_positive_qty", condition=models.Q(quantity__gt=0)),
            models.CheckConstraint(
                name="transfer_distinct_warehouses",
                condition=~models.Q(from_warehouse=models.F("to_warehouse")),
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="transfer_status_created_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Transfer#{self.id} {self.from_warehouse_id}->{self.to_warehouse_id} qty={self.quantity} {self.status}"

    def can_transition_to(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS.get(self.status)


# EOF
