"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "category", "unit_price", "cost_price", "is_active")
    search_fields = ("sku", "name", "brand", "barcode")
    list_filter = ("category", "is_active")
