"""Read-only analytics endpoints."""

from drf_spectacular.utils import OpenApiExample, extend_schema
from inventory.exceptions import InventoryError
from inventory.views import ErrorSerializer, inventory_error_response
from rest_framework.response import Response
from rest_framework.views import APIView
from warehouses.permissions import CanReadWarehouse, IsConsoleAdmin

from .selectors import global_stats, movement_totals, warehouse_stats
from .serializers import GlobalStatsSerializer, MovementTotalsSerializer, WarehouseStatsSerializer


class WarehouseStatsView(APIView):
    permission_classes = [CanReadWarehouse]

    @extend_schema(
        tags=["Analytics Endpoints"],
        summary="Warehouse stats",
        description="Stock value, cost, margin, low-stock count and current-month order figures for one warehouse.",
        responses={200: WarehouseStatsSerializer, 404: ErrorSerializer},
    )
    def get(self, request, warehouse_id: int):
        try:
            stats = warehouse_stats(warehouse_id)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(WarehouseStatsSerializer(stats).data)


class MovementTotalsView(APIView):
    permission_classes = [CanReadWarehouse]

    @extend_schema(
        tags=["Analytics Endpoints"],
        summary="Warehouse movement totals",
        description="Signed quantity and movement count per movement type for one warehouse.",
        responses={200: MovementTotalsSerializer, 404: ErrorSerializer},
        examples=[
            OpenApiExample(
                "Totals",
                value={
                    "warehouse_id": 1,
                    "totals": {
                        "inbound": {"quantity": 120, "count": 4},
                        "outbound": {"quantity": -35, "count": 3},
                        "adjustment": {"quantity": -2, "count": 1},
                        "transfer_in": {"quantity": 0, "count": 0},
                        "transfer_out": {"quantity": -10, "count": 1},
                    },
                },
            )
        ],
    )
    def get(self, request, warehouse_id: int):
        try:
            totals = movement_totals(warehouse_id)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(MovementTotalsSerializer({"warehouse_id": warehouse_id, "totals": totals}).data)


class GlobalStatsView(APIView):
    permission_classes = [IsConsoleAdmin]

    @extend_schema(
        tags=["Analytics Endpoints"],
        summary="Global stats",
        description="Totals across active warehouses and the five warehouses with the highest order profit.",
        responses={200: GlobalStatsSerializer},
        examples=[
            OpenApiExample(
                "Global",
                value={
                    "total_warehouses": 2,
                    "total_products": 12,
                    "total_inventory_value": "15400.00",
                    "total_profit": "4200.00",
                    "profit_margin": "27.27",
                    "top_warehouses": [
                        {
                            "warehouse_id": 1,
                            "name": "Main",
                            "order_profit": "950.00",
                            "total_value": "15400.00",
                            "profit_margin": "27.27",
                        }
                    ],
                },
            )
        ],
    )
    def get(self, request):
        return Response(GlobalStatsSerializer(global_stats()).data)
