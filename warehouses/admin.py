"""Admin registrations for warehouses."""

from django.contrib import admin

from .models import Warehouse, WarehousePermission


class WarehousePermissionInline(admin.TabularInline):
    model = WarehousePermission
    extra = 0


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "location", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "location")
    inlines = [WarehousePermissionInline]


@admin.register(WarehousePermission)
class WarehousePermissionAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "warehouse", "level")
    list_filter = ("level",)
    search_fields = ("user__email", "warehouse__name")
