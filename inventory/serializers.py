"""Serializers for inventory domain.

Read serializers render selector rows and models; write serializers only
validate shape and hand off to ``AdjustmentEngine`` / ``TransferWorkflow``,
which own every business rule.
"""

from common.choices import MovementType, TransferStatus
from rest_framework import serializers

from .models import StockMovement, WarehouseTransfer


class InventoryRowSerializer(serializers.Serializer):
    """Cell row as produced by ``inventory.selectors``."""

    id = serializers.IntegerField()
    warehouse_id = serializers.IntegerField()
    warehouse_name = serializers.CharField()
    product_id = serializers.IntegerField()
    sku = serializers.CharField()
    product_name = serializers.CharField()
    category = serializers.CharField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    cost_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    quantity = serializers.IntegerField()
    reserved_quantity = serializers.IntegerField()
    available = serializers.IntegerField()
    min_stock_level = serializers.IntegerField(allow_null=True)
    max_stock_level = serializers.IntegerField(allow_null=True)
    is_low_stock = serializers.BooleanField()
    is_out_of_stock = serializers.BooleanField()
    integrity_fault = serializers.BooleanField()
    updated_at = serializers.DateTimeField()


class CellSerializer(serializers.Serializer):
    """Compact cell state returned by write endpoints."""

    warehouse_id = serializers.IntegerField()
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField()
    reserved_quantity = serializers.IntegerField()
    available = serializers.IntegerField()
    min_stock_level = serializers.IntegerField(allow_null=True)
    max_stock_level = serializers.IntegerField(allow_null=True)


class StockMovementSerializer(serializers.ModelSerializer):
    """Read-only representation of stock movements."""

    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "warehouse",
            "product",
            "sku",
            "movement_type",
            "quantity",
            "previous_quantity",
            "new_quantity",
            "reason",
            "notes",
            "user",
            "transfer",
            "created_at",
        ]
        read_only_fields = fields


class WarehouseTransferSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = WarehouseTransfer
        fields = [
            "id",
            "from_warehouse",
            "to_warehouse",
            "product",
            "sku",
            "quantity",
            "status",
            "requested_by",
            "approved_by",
            "approved_at",
            "completed_at",
            "cancelled_at",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class AdjustSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    # Zero is rejected by the engine so the error code stays consistent.
    delta = serializers.IntegerField()
    reason = serializers.CharField(max_length=64)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    # Transfer legs are written by the transfer workflow only.
    movement_type = serializers.ChoiceField(
        choices=[
            (MovementType.INBOUND.value, MovementType.INBOUND.label),
            (MovementType.OUTBOUND.value, MovementType.OUTBOUND.label),
            (MovementType.ADJUSTMENT.value, MovementType.ADJUSTMENT.label),
        ],
        required=False,
    )


class ReserveSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    delta = serializers.IntegerField()


class SetQuantitySerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(max_length=64, required=False, default="stock_count")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ThresholdsSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    min_stock_level = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)
    max_stock_level = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)


class TransferRequestSerializer(serializers.Serializer):
    from_warehouse_id = serializers.IntegerField(min_value=1)
    to_warehouse_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class WarehouseQuerySerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(required=False, min_value=1)


class ListQuerySerializer(serializers.Serializer):
    """Query parameters for paged movement and transfer listings."""

    limit = serializers.IntegerField(required=False, default=20)
    offset = serializers.IntegerField(required=False, default=0)
    warehouse_id = serializers.IntegerField(required=False, min_value=1)
    product_id = serializers.IntegerField(required=False, min_value=1)
    movement_type = serializers.ChoiceField(choices=MovementType.choices, required=False)
    status = serializers.ChoiceField(choices=TransferStatus.choices, required=False)
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)


# EOF
