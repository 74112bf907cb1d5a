"""Response serializers for analytics endpoints."""

from rest_framework import serializers


class WarehouseStatsSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField()
    total_products = serializers.IntegerField()
    total_value = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_cost = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_profit = serializers.DecimalField(max_digits=18, decimal_places=2)
    profit_margin = serializers.DecimalField(max_digits=9, decimal_places=2)
    low_stock_count = serializers.IntegerField()
    order_count = serializers.IntegerField()
    monthly_revenue = serializers.DecimalField(max_digits=18, decimal_places=2)
    monthly_profit = serializers.DecimalField(max_digits=18, decimal_places=2)


class TopWarehouseSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField()
    name = serializers.CharField()
    order_profit = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_value = serializers.DecimalField(max_digits=18, decimal_places=2)
    profit_margin = serializers.DecimalField(max_digits=9, decimal_places=2)


class GlobalStatsSerializer(serializers.Serializer):
    total_warehouses = serializers.IntegerField()
    total_products = serializers.IntegerField()
    total_inventory_value = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_profit = serializers.DecimalField(max_digits=18, decimal_places=2)
    profit_margin = serializers.DecimalField(max_digits=9, decimal_places=2)
    top_warehouses = TopWarehouseSerializer(many=True)


class MovementTotalSerializer(serializers.Serializer):
    quantity = serializers.IntegerField()
    count = serializers.IntegerField()


class MovementTotalsSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField()
    totals = serializers.DictField(child=MovementTotalSerializer())
