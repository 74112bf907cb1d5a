"""Inventory HTTP surface: cell listings, adjustments, movements and transfers.

Views validate request shape, call the engine or workflow, and translate
``InventoryError`` kinds into status codes. No stock rule lives here.
"""

from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from warehouses.permissions import CanApproveTransfers, CanReadWarehouse, CanWriteWarehouse
from warehouses.selectors import readable_warehouse_ids

from .exceptions import InvalidArgument, InventoryError
from .ledger import LedgerStore
from .models import WarehouseTransfer
from .selectors import ListFilters, list_all, list_movements, list_transfers, low_stock, out_of_stock
from .serializers import (
    AdjustSerializer,
    CellSerializer,
    InventoryRowSerializer,
    ListQuerySerializer,
    ReserveSerializer,
    SetQuantitySerializer,
    StockMovementSerializer,
    ThresholdsSerializer,
    TransferRequestSerializer,
    WarehouseQuerySerializer,
    WarehouseTransferSerializer,
)
from .services import AdjustmentEngine
from .transfers import TransferWorkflow

ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_argument": status.HTTP_400_BAD_REQUEST,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "insufficient_stock": status.HTTP_409_CONFLICT,
    "conflict_retryable": status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Leaves room for the caller prefix within the stored key column.
MAX_CLIENT_KEY_LENGTH = 80

ErrorSerializer = inline_serializer(
    name="InventoryError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)


def inventory_error_response(exc: InventoryError) -> Response:
    body = {"detail": exc.message, "code": exc.code}
    if exc.code == "conflict_retryable":
        body["retryable"] = True
    return Response(body, status=ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST))


def _engine() -> AdjustmentEngine:
    return AdjustmentEngine(LedgerStore())


def _workflow() -> TransferWorkflow:
    return TransferWorkflow(engine=_engine())


def _read_scope(request, warehouse_id):
    """Warehouses an unscoped read may return; None means no restriction."""

    if warehouse_id is not None:
        return None
    return readable_warehouse_ids(user=request.user)


def _list_filters(request) -> ListFilters:
    params = ListQuerySerializer(data=request.query_params)
    params.is_valid(raise_exception=True)
    filters = ListFilters(**params.validated_data)
    filters.warehouse_ids = _read_scope(request, filters.warehouse_id)
    return filters


def _client_key(request):
    """Idempotency-Key header namespaced to the caller.

    Internal writers key movements as ``transfer:<id>:...`` and
    ``order:<id>:...``; the prefix keeps client keys out of that space.
    """

    key = request.headers.get("Idempotency-Key")
    if not key:
        return None
    if len(key) > MAX_CLIENT_KEY_LENGTH:
        raise InvalidArgument(f"Idempotency-Key must be at most {MAX_CLIENT_KEY_LENGTH} characters")
    return f"client:{request.user.pk}:{key}"


class InventoryHealthView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = []

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory health",
        description="Simple healthcheck endpoint for the inventory app",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "inventory"})],
    )
    def get(self, request):
        return Response({"status": "ok", "app": "inventory"})


class _CellListView(generics.ListAPIView):
    permission_classes = [CanReadWarehouse]
    serializer_class = InventoryRowSerializer
    # Selectors return plain rows, not querysets.
    filter_backends = []

    def warehouse_id(self):
        params = WarehouseQuerySerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        return params.validated_data.get("warehouse_id")

    def scope(self):
        warehouse_id = self.warehouse_id()
        return {"warehouse_id": warehouse_id, "warehouse_ids": _read_scope(self.request, warehouse_id)}


class InventoryListView(_CellListView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List inventory",
        description="All cells with product and warehouse details. Filter: warehouse_id.",
        parameters=[OpenApiParameter(name="warehouse_id", required=False, type=int)],
        examples=[
            OpenApiExample(
                "Inventory",
                value={
                    "count": 1,
                    "next": None,
                    "previous": None,
                    "results": [
                        {
                            "id": 1,
                            "warehouse_id": 1,
                            "warehouse_name": "Main",
                            "product_id": 7,
                            "sku": "SKU-0007",
                            "quantity": 50,
                            "reserved_quantity": 5,
                            "available": 45,
                            "is_low_stock": False,
                            "integrity_fault": False,
                        }
                    ],
                },
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return list_all(**self.scope())


class LowStockListView(_CellListView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List low-stock cells",
        description="Cells whose quantity is at or below their minimum level (default 10).",
        parameters=[OpenApiParameter(name="warehouse_id", required=False, type=int)],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return low_stock(**self.scope())


class OutOfStockListView(_CellListView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List out-of-stock cells",
        parameters=[OpenApiParameter(name="warehouse_id", required=False, type=int)],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return out_of_stock(**self.scope())


class MovementListView(APIView):
    permission_classes = [CanReadWarehouse]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements",
        description=(
            "Newest first. Filters: warehouse_id, product_id, movement_type, date_from, date_to (ISO). "
            "Paging: limit (default 20), offset."
        ),
        parameters=[ListQuerySerializer],
    )
    def get(self, request):
        try:
            rows, total = list_movements(_list_filters(request))
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response({"count": total, "results": StockMovementSerializer(rows, many=True).data})


class AdjustView(APIView):
    permission_classes = [CanWriteWarehouse]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Adjust stock",
        description="Apply a signed delta to a cell and record a movement.",
        request=AdjustSerializer,
        parameters=[
            OpenApiParameter(
                name="Idempotency-Key",
                location=OpenApiParameter.HEADER,
                required=False,
                description=(
                    "Replaying a key returns the current cell without applying the delta again. "
                    "Keys are scoped to the calling user."
                ),
                type=str,
            )
        ],
        responses={200: CellSerializer, 400: ErrorSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request):
        serializer = AdjustSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cell = _engine().adjust(
                acting_user=request.user,
                idempotency_key=_client_key(request),
                **serializer.validated_data,
            )
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(CellSerializer(cell).data, status=status.HTTP_200_OK)


class ReserveView(APIView):
    permission_classes = [CanWriteWarehouse]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reserve or release stock",
        description="Positive delta holds units, negative delta releases them. No movement is recorded.",
        request=ReserveSerializer,
        responses={200: CellSerializer, 400: ErrorSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request):
        serializer = ReserveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cell = _engine().reserve(**serializer.validated_data)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(CellSerializer(cell).data, status=status.HTTP_200_OK)


class SetQuantityView(APIView):
    permission_classes = [CanWriteWarehouse]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Set counted quantity",
        description="Bring a cell to a counted quantity with a single adjustment movement.",
        request=SetQuantitySerializer,
        responses={200: CellSerializer, 400: ErrorSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request):
        serializer = SetQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cell = _engine().set_quantity(acting_user=request.user, **serializer.validated_data)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(CellSerializer(cell).data, status=status.HTTP_200_OK)


class CellThresholdsView(APIView):
    permission_classes = [CanWriteWarehouse]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Set stock alert thresholds",
        description=(
            "Set or clear the minimum and maximum levels of a cell, creating it if needed. "
            "Omitted levels are cleared. Quantities and the movement log are untouched."
        ),
        request=ThresholdsSerializer,
        responses={200: CellSerializer, 400: ErrorSerializer, 404: ErrorSerializer},
    )
    def post(self, request):
        serializer = ThresholdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cell = _engine().configure_cell(**serializer.validated_data)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(CellSerializer(cell).data, status=status.HTTP_200_OK)


class TransferListCreateView(APIView):
    permission_classes = [CanReadWarehouse, CanWriteWarehouse]
    warehouse_id_fields = ("from_warehouse_id", "to_warehouse_id")

    @extend_schema(
        tags=["Transfer Endpoints"],
        summary="List transfers",
        description="Newest first. Filters: warehouse_id (either end), product_id, status, date_from, date_to.",
        parameters=[ListQuerySerializer],
    )
    def get(self, request):
        try:
            rows, total = list_transfers(_list_filters(request))
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response({"count": total, "results": WarehouseTransferSerializer(rows, many=True).data})

    @extend_schema(
        tags=["Transfer Endpoints"],
        summary="Request transfer",
        description="Create a pending transfer. No stock moves until it is approved and processed.",
        request=TransferRequestSerializer,
        responses={201: WarehouseTransferSerializer, 400: ErrorSerializer, 404: ErrorSerializer},
    )
    def post(self, request):
        serializer = TransferRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            transfer = _workflow().request(requested_by=request.user, **serializer.validated_data)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(WarehouseTransferSerializer(transfer).data, status=status.HTTP_201_CREATED)


class _TransferActionView(APIView):
    permission_classes = [CanWriteWarehouse]

    def get_permission_warehouse_ids(self, request):
        # Unknown transfers yield no ids; the action itself answers 404.
        row = (
            WarehouseTransfer.objects.filter(id=self.kwargs.get("transfer_id"))
            .values_list("from_warehouse_id", "to_warehouse_id")
            .first()
        )
        return list(row) if row else []

    def perform(self, workflow: TransferWorkflow, request, transfer_id: int) -> WarehouseTransfer:
        raise NotImplementedError

    def post(self, request, transfer_id: int):
        try:
            transfer = self.perform(_workflow(), request, transfer_id)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(WarehouseTransferSerializer(transfer).data, status=status.HTTP_200_OK)


class TransferApproveView(_TransferActionView):
    permission_classes = [CanApproveTransfers, CanWriteWarehouse]

    @extend_schema(
        tags=["Transfer Endpoints"],
        summary="Approve transfer",
        request=None,
        responses={200: WarehouseTransferSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request, transfer_id: int):
        return super().post(request, transfer_id)

    def perform(self, workflow, request, transfer_id):
        return workflow.approve(transfer_id=transfer_id, approved_by=request.user)


class TransferProcessView(_TransferActionView):
    @extend_schema(
        tags=["Transfer Endpoints"],
        summary="Process transfer",
        description="Move the stock of an approved transfer. Both legs commit together or not at all.",
        request=None,
        responses={
            200: WarehouseTransferSerializer,
            404: ErrorSerializer,
            409: ErrorSerializer,
            503: ErrorSerializer,
        },
    )
    def post(self, request, transfer_id: int):
        return super().post(request, transfer_id)

    def perform(self, workflow, request, transfer_id):
        return workflow.process(transfer_id=transfer_id, acting_user=request.user)


class TransferCancelView(_TransferActionView):
    @extend_schema(
        tags=["Transfer Endpoints"],
        summary="Cancel transfer",
        request=None,
        responses={200: WarehouseTransferSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request, transfer_id: int):
        return super().post(request, transfer_id)

    def perform(self, workflow, request, transfer_id):
        return workflow.cancel(transfer_id=transfer_id)


# EOF
