"""Read-only warehouse listing."""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from .selectors import list_warehouses
from .serializers import WarehouseSerializer


class WarehouseListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = WarehouseSerializer

    @extend_schema(
        tags=["Warehouse Endpoints"],
        summary="List warehouses",
        description="Active warehouses by default; pass `include_inactive=true` to include deactivated ones.",
        parameters=[OpenApiParameter(name="include_inactive", required=False, type=bool)],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        flag = str(self.request.query_params.get("include_inactive", "")).lower()
        return list_warehouses(include_inactive=flag in {"1", "true", "yes"})
