"""Admin registrations for inventory app.

Stock movements are append-only, so their admin is read-only.
"""

from django.contrib import admin

from .models import Inventory, StockMovement, WarehouseTransfer


@admin.register(Inventory)
class InventoryAdmin(admin.ModelAdmin):
    list_display = ("id", "warehouse", "product", "quantity", "reserved_quantity", "min_stock_level", "updated_at")
    list_filter = ("warehouse",)
    search_fields = ("product__sku", "product__name")
    # Quantities change only through the adjustment engine.
    readonly_fields = ("quantity", "reserved_quantity")


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("id", "warehouse", "product", "movement_type", "quantity", "new_quantity", "reason", "created_at")
    list_filter = ("movement_type", "warehouse")
    search_fields = ("product__sku", "reason", "idempotency_key")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WarehouseTransfer)
class WarehouseTransferAdmin(admin.ModelAdmin):
    list_display = ("id", "from_warehouse", "to_warehouse", "product", "quantity", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("product__sku",)
    readonly_fields = ("status", "approved_by", "approved_at", "completed_at", "cancelled_at")


# EOF
