from unittest import mock

import pytest
from catalog.tests.factories import ProductFactory
from common.choices import MovementType
from django.db import IntegrityError, OperationalError, transaction
from hypothesis import HealthCheck, given
from hypothesis import settings as hypothesis_settings
from hypothesis import strategies as st
from inventory.exceptions import ConflictRetryable, InsufficientStock, InvalidArgument, NotFound
from inventory.ledger import LedgerStore, _store_alias, is_lost_race
from inventory.models import Inventory, StockMovement
from inventory.selectors import verify_movement_chain
from inventory.services import AdjustmentEngine
from inventory.tests.factories import WarehouseTransferFactory
from users.tests.factories import UserFactory
from warehouses.tests.factories import WarehouseFactory


def _cell(warehouse, product):
    return Inventory.objects.get(warehouse=warehouse, product=product)


@pytest.mark.django_db
def test_first_inbound_creates_cell_and_one_movement():
    w = WarehouseFactory()
    p = ProductFactory()
    user = UserFactory()
    engine = AdjustmentEngine(LedgerStore())

    cell = engine.adjust(warehouse_id=w.id, product_id=p.id, delta=50, reason="inbound", acting_user=user)

    assert cell.quantity == 50
    assert cell.reserved_quantity == 0
    movements = list(StockMovement.objects.filter(warehouse=w, product=p))
    assert len(movements) == 1
    m = movements[0]
    assert (m.previous_quantity, m.new_quantity, m.quantity) == (0, 50, 50)
    assert m.movement_type == MovementType.INBOUND
    assert m.user_id == user.id
    assert m.reason == "inbound"


@pytest.mark.django_db
def test_overdraw_is_rejected_without_mutation():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=50, reason="inbound")

    with pytest.raises(InsufficientStock):
        engine.adjust(warehouse_id=w.id, product_id=p.id, delta=-60, reason="outbound")

    assert _cell(w, p).quantity == 50
    assert StockMovement.objects.filter(warehouse=w, product=p).count() == 1


@pytest.mark.django_db
def test_outbound_on_absent_cell_is_insufficient_and_creates_nothing():
    w = WarehouseFactory()
    p = ProductFactory()

    with pytest.raises(InsufficientStock):
        AdjustmentEngine().adjust(warehouse_id=w.id, product_id=p.id, delta=-1, reason="outbound")

    assert not Inventory.objects.filter(warehouse=w, product=p).exists()
    assert not StockMovement.objects.exists()


@pytest.mark.django_db
def test_outbound_cannot_eat_into_reserved_units():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=10, reason="inbound")
    engine.reserve(warehouse_id=w.id, product_id=p.id, delta=8)

    with pytest.raises(InsufficientStock):
        engine.adjust(warehouse_id=w.id, product_id=p.id, delta=-5, reason="outbound")

    cell = engine.adjust(warehouse_id=w.id, product_id=p.id, delta=-2, reason="outbound")
    assert (cell.quantity, cell.reserved_quantity, cell.available) == (8, 8, 0)


@pytest.mark.django_db
@pytest.mark.parametrize("delta", [0, True, 1.5, "3", None])
def test_delta_must_be_a_non_zero_int(delta):
    w = WarehouseFactory()
    p = ProductFactory()
    with pytest.raises(InvalidArgument):
        AdjustmentEngine().adjust(warehouse_id=w.id, product_id=p.id, delta=delta, reason="x")


@pytest.mark.django_db
def test_unknown_or_inactive_endpoints_are_not_found():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()

    with pytest.raises(NotFound):
        engine.adjust(warehouse_id=w.id, product_id=p.id + 999, delta=1, reason="inbound")
    with pytest.raises(NotFound):
        engine.adjust(warehouse_id=w.id + 999, product_id=p.id, delta=1, reason="inbound")

    closed = WarehouseFactory(is_active=False)
    with pytest.raises(NotFound):
        engine.adjust(warehouse_id=closed.id, product_id=p.id, delta=1, reason="inbound")
    retired = ProductFactory(is_active=False)
    with pytest.raises(NotFound):
        engine.reserve(warehouse_id=w.id, product_id=retired.id, delta=1)


@pytest.mark.django_db
def test_malformed_ids_are_invalid_arguments():
    with pytest.raises(InvalidArgument):
        AdjustmentEngine().adjust(warehouse_id="abc", product_id=1, delta=1, reason="inbound")
    with pytest.raises(InvalidArgument):
        AdjustmentEngine().adjust(warehouse_id=1, product_id=-4, delta=1, reason="inbound")


@pytest.mark.django_db
def test_movement_type_must_agree_with_sign():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()

    with pytest.raises(InvalidArgument):
        engine.adjust(
            warehouse_id=w.id, product_id=p.id, delta=5, reason="x", movement_type=MovementType.OUTBOUND
        )
    with pytest.raises(InvalidArgument):
        engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="x", movement_type="teleport")

    cell = engine.adjust(
        warehouse_id=w.id, product_id=p.id, delta=5, reason="count", movement_type=MovementType.ADJUSTMENT
    )
    assert cell.quantity == 5
    assert StockMovement.objects.get().movement_type == MovementType.ADJUSTMENT


@pytest.mark.django_db
def test_reserve_and_release_write_no_movement():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound")

    cell = engine.reserve(warehouse_id=w.id, product_id=p.id, delta=3)
    assert (cell.quantity, cell.reserved_quantity, cell.available) == (5, 3, 2)
    cell = engine.reserve(warehouse_id=w.id, product_id=p.id, delta=-3)
    assert cell.reserved_quantity == 0
    assert StockMovement.objects.count() == 1


@pytest.mark.django_db
def test_reserve_guards_both_directions():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=4, reason="inbound")
    engine.reserve(warehouse_id=w.id, product_id=p.id, delta=2)

    with pytest.raises(InsufficientStock):
        engine.reserve(warehouse_id=w.id, product_id=p.id, delta=-3)
    with pytest.raises(InsufficientStock):
        engine.reserve(warehouse_id=w.id, product_id=p.id, delta=3)

    cell = _cell(w, p)
    assert (cell.quantity, cell.reserved_quantity) == (4, 2)


@pytest.mark.django_db
def test_set_quantity_records_single_adjustment():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=50, reason="inbound")

    cell = engine.set_quantity(warehouse_id=w.id, product_id=p.id, quantity=42)
    assert cell.quantity == 42
    latest = StockMovement.objects.order_by("-id").first()
    assert latest.movement_type == MovementType.ADJUSTMENT
    assert (latest.previous_quantity, latest.new_quantity, latest.quantity) == (50, 42, -8)
    assert latest.reason == "stock_count"

    # Counting the same number again changes nothing.
    engine.set_quantity(warehouse_id=w.id, product_id=p.id, quantity=42)
    assert StockMovement.objects.count() == 2


@pytest.mark.django_db
def test_set_quantity_to_zero_on_absent_cell_creates_empty_cell():
    w = WarehouseFactory()
    p = ProductFactory()

    cell = AdjustmentEngine().set_quantity(warehouse_id=w.id, product_id=p.id, quantity=0)

    assert cell.quantity == 0
    assert Inventory.objects.filter(warehouse=w, product=p).exists()
    assert not StockMovement.objects.exists()


@pytest.mark.django_db
def test_configure_cell_validates_thresholds():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()

    with pytest.raises(InvalidArgument):
        engine.configure_cell(warehouse_id=w.id, product_id=p.id, min_stock_level=20, max_stock_level=5)
    with pytest.raises(InvalidArgument):
        engine.configure_cell(warehouse_id=w.id, product_id=p.id, min_stock_level=-1)

    cell = engine.configure_cell(warehouse_id=w.id, product_id=p.id, min_stock_level=5, max_stock_level=100)
    assert (cell.min_stock_level, cell.max_stock_level, cell.quantity) == (5, 100, 0)

    cell = engine.configure_cell(warehouse_id=w.id, product_id=p.id)
    assert cell.min_stock_level is None
    assert cell.max_stock_level is None


@pytest.mark.django_db
def test_idempotency_key_replay_applies_once():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()

    first = engine.adjust(warehouse_id=w.id, product_id=p.id, delta=7, reason="inbound", idempotency_key="po-1")
    again = engine.adjust(warehouse_id=w.id, product_id=p.id, delta=7, reason="inbound", idempotency_key="po-1")

    assert first.quantity == again.quantity == 7
    assert StockMovement.objects.filter(idempotency_key="po-1").count() == 1

    with pytest.raises(InvalidArgument):
        engine.adjust(warehouse_id=w.id, product_id=p.id, delta=8, reason="inbound", idempotency_key="po-1")


@pytest.mark.django_db
def test_idempotency_key_replay_must_match_type_and_transfer():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound", idempotency_key="po-2")

    with pytest.raises(InvalidArgument):
        engine.adjust(
            warehouse_id=w.id,
            product_id=p.id,
            delta=5,
            reason="count",
            movement_type=MovementType.ADJUSTMENT,
            idempotency_key="po-2",
        )

    first = WarehouseTransferFactory(to_warehouse=w, product=p)
    second = WarehouseTransferFactory(to_warehouse=w, product=p)
    leg = {
        "warehouse_id": w.id,
        "product_id": p.id,
        "delta": 3,
        "reason": "transfer",
        "movement_type": MovementType.TRANSFER_IN,
        "idempotency_key": "leg-in",
    }
    engine.adjust(transfer=first, **leg)
    replayed = engine.adjust(transfer=first, **leg)
    with pytest.raises(InvalidArgument):
        engine.adjust(transfer=second, **leg)

    assert replayed.quantity == 8
    assert StockMovement.objects.filter(warehouse=w, product=p).count() == 2


@pytest.mark.django_db
@pytest.mark.parametrize("movement_type", [MovementType.TRANSFER_IN, MovementType.TRANSFER_OUT])
def test_transfer_movement_types_require_a_transfer(movement_type):
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=w.id, product_id=p.id, delta=10, reason="inbound")
    delta = 4 if movement_type == MovementType.TRANSFER_IN else -4

    with pytest.raises(InvalidArgument):
        engine.adjust(warehouse_id=w.id, product_id=p.id, delta=delta, reason="x", movement_type=movement_type)

    assert _cell(w, p).quantity == 10
    assert StockMovement.objects.count() == 1


@pytest.mark.django_db
def test_every_adjust_leaves_a_chained_audit_record():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    deltas = [10, -3, 25, -32, 4]

    for delta in deltas:
        engine.adjust(warehouse_id=w.id, product_id=p.id, delta=delta, reason="test")

    movements = list(StockMovement.objects.filter(warehouse=w, product=p).order_by("id"))
    assert [m.quantity for m in movements] == deltas
    for m in movements:
        assert m.new_quantity - m.previous_quantity == m.quantity
    assert movements[-1].new_quantity == _cell(w, p).quantity == 4
    assert verify_movement_chain(w.id, p.id) is None


@pytest.mark.django_db
def test_movements_are_append_only():
    w = WarehouseFactory()
    p = ProductFactory()
    AdjustmentEngine().adjust(warehouse_id=w.id, product_id=p.id, delta=3, reason="inbound")
    movement = StockMovement.objects.get()

    movement.notes = "edited"
    with pytest.raises(ValueError):
        movement.save()
    with pytest.raises(ValueError):
        movement.delete()


@pytest.mark.django_db
def test_upsert_reports_created_then_updated():
    w = WarehouseFactory()
    p = ProductFactory()
    store = LedgerStore()

    first = store.upsert_cell(w.id, p.id, quantity=3)
    second = store.upsert_cell(w.id, p.id, reserved_quantity=1)

    assert first.created and not first.updated
    assert second.updated
    assert (second.cell.quantity, second.cell.reserved_quantity) == (3, 1)


@pytest.mark.django_db(transaction=True)
def test_lost_race_is_retried_transparently():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    real_lock = engine.store.lock_cell
    calls = []

    def flaky(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("deadlock detected")
        return real_lock(*args, **kwargs)

    with mock.patch.object(engine.store, "lock_cell", side_effect=flaky):
        cell = engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound")

    assert cell.quantity == 5
    assert len(calls) > 1
    assert StockMovement.objects.count() == 1


@pytest.mark.django_db(transaction=True)
def test_retries_are_bounded(settings):
    settings.INVENTORY_CONFLICT_RETRIES = 3
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()

    with mock.patch.object(engine.store, "lock_cell", side_effect=OperationalError("could not serialize")) as lock:
        with pytest.raises(ConflictRetryable):
            engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound")

    assert lock.call_count == 3
    assert not Inventory.objects.exists()


@pytest.mark.django_db(transaction=True)
def test_conflict_inside_enclosing_transaction_surfaces_immediately():
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()

    with mock.patch.object(engine.store, "lock_cell", side_effect=OperationalError("deadlock")) as lock:
        with transaction.atomic():
            with pytest.raises(ConflictRetryable):
                engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound")

    assert lock.call_count == 1


@pytest.mark.django_db(transaction=True)
def test_check_violation_is_not_retried(settings):
    settings.INVENTORY_CONFLICT_RETRIES = 3
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    failure = IntegrityError("CHECK constraint failed: inventory_quantity_non_negative")

    with mock.patch.object(engine.store, "lock_cell", side_effect=failure) as lock:
        with pytest.raises(IntegrityError):
            engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound")

    assert lock.call_count == 1


@pytest.mark.django_db(transaction=True)
def test_unique_violation_is_retried(settings):
    settings.INVENTORY_CONFLICT_RETRIES = 3
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    failure = IntegrityError("UNIQUE constraint failed: inventory_inventory.warehouse_id")

    with mock.patch.object(engine.store, "lock_cell", side_effect=failure) as lock:
        with pytest.raises(ConflictRetryable):
            engine.adjust(warehouse_id=w.id, product_id=p.id, delta=5, reason="inbound")

    assert lock.call_count == 3


class _DriverError(Exception):
    def __init__(self, sqlstate):
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


def _with_sqlstate(exc, sqlstate):
    exc.__cause__ = _DriverError(sqlstate)
    return exc


@pytest.mark.parametrize(
    "exc,expected",
    [
        (_with_sqlstate(IntegrityError("duplicate key value"), "23505"), True),
        (_with_sqlstate(IntegrityError("violates check constraint"), "23514"), False),
        (_with_sqlstate(IntegrityError("violates foreign key constraint"), "23503"), False),
        (_with_sqlstate(OperationalError("deadlock detected"), "40P01"), True),
        (_with_sqlstate(OperationalError("could not serialize access"), "40001"), True),
        (_with_sqlstate(OperationalError("terminating connection"), "57P01"), False),
        (IntegrityError("UNIQUE constraint failed: inventory_stockmovement.idempotency_key"), True),
        (IntegrityError("CHECK constraint failed: inventory_reserved_within_quantity"), False),
        (OperationalError("database is locked"), True),
        (ConflictRetryable("busy"), True),
    ],
)
def test_lost_race_classification(exc, expected):
    assert is_lost_race(exc) is expected


def test_retry_uses_the_store_database():
    assert _store_alias((AdjustmentEngine(LedgerStore(using="replica")),)) == "replica"
    assert _store_alias(()) == "default"


_ops = st.lists(
    st.tuples(
        st.sampled_from(["adjust", "reserve"]),
        st.integers(min_value=-30, max_value=30).filter(lambda d: d != 0),
    ),
    min_size=1,
    max_size=25,
)


@pytest.mark.django_db
@hypothesis_settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(ops=_ops)
def test_counters_never_go_negative_and_only_violating_deltas_are_rejected(ops):
    w = WarehouseFactory()
    p = ProductFactory()
    engine = AdjustmentEngine()
    quantity = reserved = 0
    accepted_adjusts = 0

    for op, delta in ops:
        if op == "adjust":
            new = quantity + delta
            should_reject = new < 0 or (delta < 0 and new < reserved)
        else:
            new = reserved + delta
            should_reject = new < 0 or (delta > 0 and new > quantity)

        if should_reject:
            with pytest.raises(InsufficientStock):
                getattr(engine, op)(warehouse_id=w.id, product_id=p.id, delta=delta, **_extra(op))
            continue

        cell = getattr(engine, op)(warehouse_id=w.id, product_id=p.id, delta=delta, **_extra(op))
        if op == "adjust":
            quantity = new
            accepted_adjusts += 1
        else:
            reserved = new
        assert cell.quantity >= 0
        assert cell.reserved_quantity >= 0
        assert (cell.quantity, cell.reserved_quantity) == (quantity, reserved)

    assert StockMovement.objects.filter(warehouse=w, product=p).count() == accepted_adjusts
    assert verify_movement_chain(w.id, p.id) is None


def _extra(op):
    return {"reason": "property"} if op == "adjust" else {}
