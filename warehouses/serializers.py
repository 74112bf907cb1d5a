"""Serializers for warehouses."""

from rest_framework import serializers

from .models import Warehouse


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = ["id", "name", "description", "location", "is_active", "created_at"]
        read_only_fields = fields
