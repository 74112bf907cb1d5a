from django.contrib import admin

from .models import Order, OrderStatusHistory


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ("status", "notes", "created_at")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "platform", "platform_order_id", "warehouse", "product", "quantity", "status", "created_at")
    list_filter = ("status", "platform", "payment_status", "created_at")
    search_fields = ("platform_order_id", "customer_name", "customer_email", "product__sku")
    date_hierarchy = "created_at"
    # Status changes go through orders.services so stock stays in step.
    readonly_fields = ("status", "stock_reserved")
    inlines = [OrderStatusHistoryInline]
