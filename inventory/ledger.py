"""Ledger store: row-level primitives over inventory cells and the movement log.

All mutation goes through a ``LedgerStore`` instance. Callers compose
primitives inside ``store.atomic()`` so a cell update and its movement
commit together. Conflicting writers are serialized with
``SELECT ... FOR UPDATE`` on the cell row.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, IntegrityError, OperationalError, transaction

from .exceptions import ConflictRetryable
from .models import Inventory, StockMovement

logger = logging.getLogger("stockledger.inventory")

UNSET = object()


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of ``upsert_cell``: the stored row and whether it was created."""

    cell: Inventory
    created: bool

    @property
    def updated(self) -> bool:
        return not self.created


# SQLSTATEs of a lost race: unique violation, serialization failure, deadlock.
RACE_SQLSTATES = frozenset({"23505", "40001", "40P01"})


def is_lost_race(exc: Exception) -> bool:
    """Whether ``exc`` means a concurrent writer won and a replay may succeed.

    Other integrity errors (check or foreign-key violations) are bugs or bad
    input and are never retried.
    """

    if isinstance(exc, ConflictRetryable):
        return True
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate:
        return sqlstate in RACE_SQLSTATES
    if isinstance(exc, IntegrityError):
        # SQLite reports no SQLSTATE.
        return "unique constraint" in str(exc).lower()
    return isinstance(exc, OperationalError)


def _store_alias(args) -> str:
    store = getattr(args[0], "store", None) if args else None
    return getattr(store, "using", DEFAULT_DB_ALIAS)


def retry_on_conflict(func):
    """Retry a logical write a bounded number of times after a lost race.

    Unique-constraint collisions on first touch, deadlocks and serialization
    failures are treated as lost races (see ``is_lost_race``); any other
    database error propagates unchanged. When the call runs inside an
    enclosing transaction on the store's database it cannot be replayed
    here, so the conflict is surfaced as ``ConflictRetryable`` for the
    outermost caller to retry.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(1, int(getattr(settings, "INVENTORY_CONFLICT_RETRIES", 3)))
        using = _store_alias(args)
        last_exc = None
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except (IntegrityError, OperationalError, ConflictRetryable) as exc:
                if not is_lost_race(exc):
                    raise
                last_exc = exc
                if transaction.get_connection(using).in_atomic_block:
                    if isinstance(exc, ConflictRetryable):
                        raise
                    raise ConflictRetryable("Concurrent update on inventory ledger", operation=func.__name__) from exc
                logger.warning(
                    "inventory.write_conflict",
                    extra={"operation": func.__name__, "attempt": attempt, "error": str(exc)},
                )
        raise ConflictRetryable(
            "Concurrent update on inventory ledger", operation=func.__name__, attempts=attempts
        ) from last_exc

    return wrapper


class LedgerStore:
    """Single source of truth for inventory cells and stock movements."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def atomic(self):
        return transaction.atomic(using=self.using)

    def _cells(self):
        return Inventory.objects.using(self.using)

    def get_cell(self, warehouse_id: int, product_id: int) -> Optional[Inventory]:
        return self._cells().filter(warehouse_id=warehouse_id, product_id=product_id).first()

    def lock_cell(self, warehouse_id: int, product_id: int, *, create: bool = False) -> Optional[Inventory]:
        """Return the cell row locked for update, optionally creating it first.

        Must run inside ``atomic()``.
        """

        if create:
            return self._lock_or_create(warehouse_id, product_id)[0]
        try:
            return self._cells().select_for_update().get(warehouse_id=warehouse_id, product_id=product_id)
        except Inventory.DoesNotExist:
            return None

    def _lock_or_create(self, warehouse_id: int, product_id: int) -> tuple[Inventory, bool]:
        cell = self.lock_cell(warehouse_id, product_id)
        if cell is not None:
            return cell, False
        created = True
        try:
            # Savepoint: a concurrent first touch wins the unique constraint and we lock its row instead.
            with transaction.atomic(using=self.using):
                self._cells().create(warehouse_id=warehouse_id, product_id=product_id, quantity=0, reserved_quantity=0)
        except IntegrityError:
            created = False
        cell = self._cells().select_for_update().get(warehouse_id=warehouse_id, product_id=product_id)
        if created:
            logger.info("inventory.cell_created", extra={"warehouse_id": warehouse_id, "product_id": product_id})
        return cell, created

    def upsert_cell(
        self,
        warehouse_id: int,
        product_id: int,
        *,
        quantity: Optional[int] = None,
        reserved_quantity: Optional[int] = None,
        min_stock_level=UNSET,
        max_stock_level=UNSET,
    ) -> UpsertResult:
        """Create the cell if absent, then overwrite the supplied fields.

        Counters default to zero on creation. Thresholds accept ``None`` to
        clear them, so they use a sentinel for "not supplied".
        """

        with self.atomic():
            cell, created = self._lock_or_create(warehouse_id, product_id)
            fields = []
            if quantity is not None:
                cell.quantity = int(quantity)
                fields.append("quantity")
            if reserved_quantity is not None:
                cell.reserved_quantity = int(reserved_quantity)
                fields.append("reserved_quantity")
            if min_stock_level is not UNSET:
                cell.min_stock_level = min_stock_level
                fields.append("min_stock_level")
            if max_stock_level is not UNSET:
                cell.max_stock_level = max_stock_level
                fields.append("max_stock_level")
            if fields:
                cell.save(using=self.using, update_fields=fields + ["updated_at"])
        return UpsertResult(cell=cell, created=created)

    def append_movement(
        self,
        *,
        warehouse_id: int,
        product_id: int,
        movement_type: str,
        quantity: int,
        previous_quantity: int,
        new_quantity: int,
        reason: str = "",
        notes: str = "",
        user_id: Optional[int] = None,
        transfer_id: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> StockMovement:
        return StockMovement.objects.using(self.using).create(
            warehouse_id=warehouse_id,
            product_id=product_id,
            movement_type=movement_type,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            reason=reason or "",
            notes=notes or "",
            user_id=user_id,
            transfer_id=transfer_id,
            idempotency_key=idempotency_key or None,
        )

    def find_movement(self, idempotency_key: str) -> Optional[StockMovement]:
        if not idempotency_key:
            return None
        return StockMovement.objects.using(self.using).filter(idempotency_key=idempotency_key).first()


# EOF
