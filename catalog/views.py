"""Read-only product endpoints."""

from django_filters import rest_framework as filters
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import filters as drf_filters
from rest_framework import viewsets

from .models import Product
from .serializers import ProductSerializer


class ProductFilterSet(filters.FilterSet):
    category = filters.CharFilter(field_name="category")
    is_active = filters.BooleanFilter(field_name="is_active")

    class Meta:
        model = Product
        fields = ["category", "is_active"]


@extend_schema_view(
    list=extend_schema(
        summary="List products",
        description="Returns products. Filter by `category` or `is_active`; search by name, SKU or brand.",
        tags=["Catalog Endpoints"],
    ),
    retrieve=extend_schema(summary="Get product", tags=["Catalog Endpoints"]),
)
class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Product.objects.all().order_by("name", "id")
    serializer_class = ProductSerializer
    filterset_class = ProductFilterSet
    filter_backends = [filters.DjangoFilterBackend, drf_filters.SearchFilter, drf_filters.OrderingFilter]
    search_fields = ["name", "sku", "brand"]
    ordering_fields = ["name", "sku", "created_at"]
