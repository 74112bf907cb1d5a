"""Serializers for the catalog app (read-only)."""

from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "category",
            "unit_price",
            "cost_price",
            "brand",
            "barcode",
            "supplier",
            "is_active",
        ]
        read_only_fields = fields
