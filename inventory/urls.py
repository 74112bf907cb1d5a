from django.urls import path

from .views import (
    AdjustView,
    CellThresholdsView,
    InventoryHealthView,
    InventoryListView,
    LowStockListView,
    MovementListView,
    OutOfStockListView,
    ReserveView,
    SetQuantityView,
    TransferApproveView,
    TransferCancelView,
    TransferListCreateView,
    TransferProcessView,
)

urlpatterns = [
    path("health/", InventoryHealthView.as_view(), name="inventory-health"),
    # Read-only endpoints
    path("", InventoryListView.as_view(), name="inventory-list"),
    path("low-stock/", LowStockListView.as_view(), name="inventory-low-stock"),
    path("out-of-stock/", OutOfStockListView.as_view(), name="inventory-out-of-stock"),
    path("movements/", MovementListView.as_view(), name="movement-list"),
    # Stock changes
    path("adjust/", AdjustView.as_view(), name="inventory-adjust"),
    path("reserve/", ReserveView.as_view(), name="inventory-reserve"),
    path("set-quantity/", SetQuantityView.as_view(), name="inventory-set-quantity"),
    path("thresholds/", CellThresholdsView.as_view(), name="inventory-thresholds"),
    # Transfers
    path("transfers/", TransferListCreateView.as_view(), name="transfer-list"),
    path("transfers/<int:transfer_id>/approve/", TransferApproveView.as_view(), name="transfer-approve"),
    path("transfers/<int:transfer_id>/process/", TransferProcessView.as_view(), name="transfer-process"),
    path("transfers/<int:transfer_id>/cancel/", TransferCancelView.as_view(), name="transfer-cancel"),
]

# EOF
