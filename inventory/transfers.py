"""Warehouse transfer workflow: request -> approve -> process, with cancel.

Approval is the business decision; processing is the stock move and can be
retried on its own if stock was consumed between approval and processing.
Both legs of a processed transfer commit in one transaction.
"""

import logging
from typing import Optional

from common.choices import MovementType
from django.utils import timezone

from .exceptions import InsufficientStock, InvalidArgument, InvalidTransition, NotFound
from .ledger import LedgerStore, retry_on_conflict
from .models import WarehouseTransfer
from .services import AdjustmentEngine, _coerce_id, _user_id, require_active

logger = logging.getLogger("stockledger.transfers")


class TransferWorkflow:
    def __init__(self, store: Optional[LedgerStore] = None, engine: Optional[AdjustmentEngine] = None):
        self.store = store or (engine.store if engine is not None else LedgerStore())
        self.engine = engine or AdjustmentEngine(self.store)

    def request(
        self,
        *,
        from_warehouse_id: int,
        to_warehouse_id: int,
        product_id: int,
        quantity: int,
        requested_by,
        notes: str = "",
    ) -> WarehouseTransfer:
        """Record a pending transfer. Inventory and reservations are untouched."""

        from_warehouse_id = _coerce_id(from_warehouse_id, "from_warehouse_id")
        to_warehouse_id = _coerce_id(to_warehouse_id, "to_warehouse_id")
        product_id = _coerce_id(product_id, "product_id")
        if from_warehouse_id == to_warehouse_id:
            raise InvalidArgument("Source and destination warehouses must differ")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidArgument("Transfer quantity must be a positive integer")
        if requested_by is None:
            raise InvalidArgument("requested_by is required")

        with self.store.atomic():
            require_active(warehouse_id=from_warehouse_id, product_id=product_id)
            require_active(warehouse_id=to_warehouse_id, product_id=product_id)
            transfer = WarehouseTransfer.objects.using(self.store.using).create(
                from_warehouse_id=from_warehouse_id,
                to_warehouse_id=to_warehouse_id,
                product_id=product_id,
                quantity=quantity,
                requested_by_id=_user_id(requested_by),
                notes=notes or "",
            )
        self._log_transition(transfer, None)
        return transfer

    def approve(self, *, transfer_id: int, approved_by) -> WarehouseTransfer:
        if approved_by is None:
            raise InvalidArgument("approved_by is required")
        with self.store.atomic():
            transfer = self._lock(transfer_id)
            previous = self._ensure_transition(transfer, WarehouseTransfer.STATUS_APPROVED)
            transfer.status = WarehouseTransfer.STATUS_APPROVED
            transfer.approved_by_id = _user_id(approved_by)
            transfer.approved_at = timezone.now()
            transfer.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])
        self._log_transition(transfer, previous)
        return transfer

    @retry_on_conflict
    def process(self, *, transfer_id: int, acting_user=None) -> WarehouseTransfer:
        """Move the stock of an approved transfer and complete it.

        Fails with ``InsufficientStock`` when the source cannot cover the
        quantity at this moment; the transfer then stays ``approved``.
        """

        with self.store.atomic():
            transfer = self._lock(transfer_id)
            previous = self._ensure_transition(transfer, WarehouseTransfer.STATUS_COMPLETED)

            # Fixed lock order so transfers in opposite directions cannot deadlock.
            for warehouse_id in sorted({transfer.from_warehouse_id, transfer.to_warehouse_id}):
                self.store.lock_cell(warehouse_id, transfer.product_id)

            source = self.store.get_cell(transfer.from_warehouse_id, transfer.product_id)
            available = source.available if source is not None else 0
            if available < transfer.quantity:
                raise InsufficientStock(
                    "Insufficient available stock at source warehouse",
                    transfer_id=transfer.id,
                    warehouse_id=transfer.from_warehouse_id,
                    available=available,
                    requested=transfer.quantity,
                )

            actor = acting_user if acting_user is not None else transfer.approved_by_id
            self.engine.adjust(
                warehouse_id=transfer.from_warehouse_id,
                product_id=transfer.product_id,
                delta=-transfer.quantity,
                reason="transfer_out",
                acting_user=actor,
                notes=f"Transfer #{transfer.id} to warehouse {transfer.to_warehouse_id}",
                movement_type=MovementType.TRANSFER_OUT,
                transfer=transfer,
                idempotency_key=f"transfer:{transfer.id}:out",
            )
            self.engine.adjust(
                warehouse_id=transfer.to_warehouse_id,
                product_id=transfer.product_id,
                delta=transfer.quantity,
                reason="transfer_in",
                acting_user=actor,
                notes=f"Transfer #{transfer.id} from warehouse {transfer.from_warehouse_id}",
                movement_type=MovementType.TRANSFER_IN,
                transfer=transfer,
                idempotency_key=f"transfer:{transfer.id}:in",
            )

            transfer.status = WarehouseTransfer.STATUS_COMPLETED
            transfer.completed_at = timezone.now()
            transfer.save(update_fields=["status", "completed_at", "updated_at"])
        self._log_transition(transfer, previous)
        return transfer

    def cancel(self, *, transfer_id: int) -> WarehouseTransfer:
        """Cancel a pending or approved transfer. No stock has moved yet."""

        with self.store.atomic():
            transfer = self._lock(transfer_id)
            previous = self._ensure_transition(transfer, WarehouseTransfer.STATUS_CANCELLED)
            transfer.status = WarehouseTransfer.STATUS_CANCELLED
            transfer.cancelled_at = timezone.now()
            transfer.save(update_fields=["status", "cancelled_at", "updated_at"])
        self._log_transition(transfer, previous)
        return transfer

    def _lock(self, transfer_id) -> WarehouseTransfer:
        transfer_id = _coerce_id(transfer_id, "transfer_id")
        try:
            return WarehouseTransfer.objects.using(self.store.using).select_for_update().get(id=transfer_id)
        except WarehouseTransfer.DoesNotExist:
            raise NotFound("Transfer not found", transfer_id=transfer_id)

    @staticmethod
    def _ensure_transition(transfer: WarehouseTransfer, target: str) -> str:
        if transfer.is_terminal:
            raise InvalidTransition(
                f"Transfer is already {transfer.status!s}",
                transfer_id=transfer.id,
                status=str(transfer.status),
                target=str(target),
            )
        if not transfer.can_transition_to(target):
            raise InvalidTransition(
                f"Cannot move transfer from {transfer.status} to {target}",
                transfer_id=transfer.id,
                status=str(transfer.status),
                target=str(target),
            )
        return str(transfer.status)

    @staticmethod
    def _log_transition(transfer: WarehouseTransfer, previous: Optional[str]) -> None:
        logger.info(
            "transfer.status_changed",
            extra={
                "event": "transfer.status_changed",
                "transfer_id": transfer.id,
                "status_from": previous,
                "status_to": str(transfer.status),
                "from_warehouse_id": transfer.from_warehouse_id,
                "to_warehouse_id": transfer.to_warehouse_id,
                "product_id": transfer.product_id,
                "quantity": transfer.quantity,
            },
        )


# EOF
