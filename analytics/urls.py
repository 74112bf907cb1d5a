from django.urls import path

from .views import GlobalStatsView, MovementTotalsView, WarehouseStatsView

urlpatterns = [
    path("warehouses/<int:warehouse_id>/", WarehouseStatsView.as_view(), name="analytics-warehouse"),
    path(
        "warehouses/<int:warehouse_id>/movements/",
        MovementTotalsView.as_view(),
        name="analytics-warehouse-movements",
    ),
    path("global/", GlobalStatsView.as_view(), name="analytics-global"),
]
