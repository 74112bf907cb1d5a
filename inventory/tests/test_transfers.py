from unittest import mock

import pytest
from catalog.tests.factories import ProductFactory
from common.choices import MovementType, TransferStatus
from inventory.exceptions import InsufficientStock, InvalidArgument, InvalidTransition, NotFound
from inventory.models import Inventory, StockMovement, WarehouseTransfer
from inventory.selectors import verify_movement_chain
from inventory.services import AdjustmentEngine
from inventory.tests.factories import WarehouseTransferFactory
from inventory.transfers import TransferWorkflow
from users.tests.factories import ManagerFactory, UserFactory
from warehouses.tests.factories import WarehouseFactory


def _quantity(warehouse, product):
    cell = Inventory.objects.filter(warehouse=warehouse, product=product).first()
    return cell.quantity if cell else 0


@pytest.fixture
def stocked():
    source = WarehouseFactory(name="Source")
    target = WarehouseFactory(name="Target")
    product = ProductFactory()
    AdjustmentEngine().adjust(warehouse_id=source.id, product_id=product.id, delta=100, reason="inbound")
    return source, target, product


@pytest.mark.django_db
def test_request_approve_process_moves_stock(stocked):
    source, target, product = stocked
    requester = UserFactory()
    manager = ManagerFactory()
    workflow = TransferWorkflow()

    transfer = workflow.request(
        from_warehouse_id=source.id,
        to_warehouse_id=target.id,
        product_id=product.id,
        quantity=30,
        requested_by=requester,
    )
    assert transfer.status == TransferStatus.PENDING
    assert _quantity(source, product) == 100
    assert _quantity(target, product) == 0

    transfer = workflow.approve(transfer_id=transfer.id, approved_by=manager)
    assert transfer.status == TransferStatus.APPROVED
    assert transfer.approved_by_id == manager.id
    assert transfer.approved_at is not None
    assert _quantity(source, product) == 100

    transfer = workflow.process(transfer_id=transfer.id)
    assert transfer.status == TransferStatus.COMPLETED
    assert transfer.completed_at is not None
    assert _quantity(source, product) == 70
    assert _quantity(target, product) == 30

    legs = {m.movement_type: m for m in StockMovement.objects.filter(transfer=transfer)}
    assert set(legs) == {MovementType.TRANSFER_OUT, MovementType.TRANSFER_IN}
    assert legs[MovementType.TRANSFER_OUT].quantity == -30
    assert legs[MovementType.TRANSFER_IN].quantity == 30
    # Without an explicit actor the approver is recorded on both legs.
    assert {m.user_id for m in legs.values()} == {manager.id}
    assert verify_movement_chain(source.id, product.id) is None
    assert verify_movement_chain(target.id, product.id) is None


@pytest.mark.django_db
def test_request_validation(stocked):
    source, target, product = stocked
    user = UserFactory()
    workflow = TransferWorkflow()

    with pytest.raises(InvalidArgument):
        workflow.request(
            from_warehouse_id=source.id, to_warehouse_id=source.id, product_id=product.id, quantity=1, requested_by=user
        )
    for bad in (0, -3, True, 2.5):
        with pytest.raises(InvalidArgument):
            workflow.request(
                from_warehouse_id=source.id,
                to_warehouse_id=target.id,
                product_id=product.id,
                quantity=bad,
                requested_by=user,
            )
    with pytest.raises(InvalidArgument):
        workflow.request(
            from_warehouse_id=source.id, to_warehouse_id=target.id, product_id=product.id, quantity=1, requested_by=None
        )
    closed = WarehouseFactory(is_active=False)
    with pytest.raises(NotFound):
        workflow.request(
            from_warehouse_id=source.id, to_warehouse_id=closed.id, product_id=product.id, quantity=1, requested_by=user
        )
    assert not WarehouseTransfer.objects.exists()


@pytest.mark.django_db
def test_request_does_not_check_stock():
    source = WarehouseFactory()
    target = WarehouseFactory()
    product = ProductFactory()

    transfer = TransferWorkflow().request(
        from_warehouse_id=source.id,
        to_warehouse_id=target.id,
        product_id=product.id,
        quantity=500,
        requested_by=UserFactory(),
    )

    assert transfer.status == TransferStatus.PENDING


@pytest.mark.django_db
def test_short_source_keeps_transfer_approved(stocked):
    source, target, product = stocked
    workflow = TransferWorkflow()
    transfer = workflow.request(
        from_warehouse_id=source.id,
        to_warehouse_id=target.id,
        product_id=product.id,
        quantity=80,
        requested_by=UserFactory(),
    )
    workflow.approve(transfer_id=transfer.id, approved_by=ManagerFactory())
    AdjustmentEngine().adjust(warehouse_id=source.id, product_id=product.id, delta=-50, reason="outbound")

    with pytest.raises(InsufficientStock):
        workflow.process(transfer_id=transfer.id)

    transfer.refresh_from_db()
    assert transfer.status == TransferStatus.APPROVED
    assert _quantity(source, product) == 50
    assert _quantity(target, product) == 0
    assert not StockMovement.objects.filter(transfer=transfer).exists()

    # Restock and retry the processing step on its own.
    AdjustmentEngine().adjust(warehouse_id=source.id, product_id=product.id, delta=50, reason="inbound")
    transfer = workflow.process(transfer_id=transfer.id)
    assert transfer.status == TransferStatus.COMPLETED
    assert (_quantity(source, product), _quantity(target, product)) == (20, 80)


@pytest.mark.django_db
def test_reserved_units_at_source_are_not_transferable(stocked):
    source, target, product = stocked
    engine = AdjustmentEngine()
    engine.reserve(warehouse_id=source.id, product_id=product.id, delta=90)
    workflow = TransferWorkflow(engine=engine)
    transfer = workflow.request(
        from_warehouse_id=source.id,
        to_warehouse_id=target.id,
        product_id=product.id,
        quantity=20,
        requested_by=UserFactory(),
    )
    workflow.approve(transfer_id=transfer.id, approved_by=ManagerFactory())

    with pytest.raises(InsufficientStock):
        workflow.process(transfer_id=transfer.id)
    assert _quantity(source, product) == 100


@pytest.mark.django_db
def test_cancel_pending_and_approved(stocked):
    source, target, product = stocked
    workflow = TransferWorkflow()
    pending = WarehouseTransferFactory(from_warehouse=source, to_warehouse=target, product=product)
    approved = WarehouseTransferFactory(
        from_warehouse=source, to_warehouse=target, product=product, status=TransferStatus.APPROVED
    )

    for transfer in (pending, approved):
        cancelled = workflow.cancel(transfer_id=transfer.id)
        assert cancelled.status == TransferStatus.CANCELLED
        assert cancelled.cancelled_at is not None

    assert _quantity(source, product) == 100
    assert StockMovement.objects.count() == 1


@pytest.mark.django_db
def test_unknown_transfer_is_not_found():
    workflow = TransferWorkflow()
    with pytest.raises(NotFound):
        workflow.approve(transfer_id=987654, approved_by=ManagerFactory())
    with pytest.raises(NotFound):
        workflow.process(transfer_id=987654)
    with pytest.raises(NotFound):
        workflow.cancel(transfer_id=987654)


@pytest.mark.django_db
@pytest.mark.parametrize(
    "status,action",
    [
        (TransferStatus.PENDING, "process"),
        (TransferStatus.APPROVED, "approve"),
        (TransferStatus.COMPLETED, "approve"),
        (TransferStatus.COMPLETED, "process"),
        (TransferStatus.COMPLETED, "cancel"),
        (TransferStatus.CANCELLED, "approve"),
        (TransferStatus.CANCELLED, "process"),
        (TransferStatus.CANCELLED, "cancel"),
    ],
)
def test_disallowed_transitions_leave_transfer_untouched(status, action):
    transfer = WarehouseTransferFactory(status=status)
    workflow = TransferWorkflow()
    kwargs = {"transfer_id": transfer.id}
    if action == "approve":
        kwargs["approved_by"] = ManagerFactory()

    with pytest.raises(InvalidTransition):
        getattr(workflow, action)(**kwargs)

    transfer.refresh_from_db()
    assert transfer.status == status
    assert not StockMovement.objects.exists()


@pytest.mark.django_db
def test_failure_between_legs_rolls_back_both(stocked):
    source, target, product = stocked
    workflow = TransferWorkflow()
    transfer = workflow.request(
        from_warehouse_id=source.id,
        to_warehouse_id=target.id,
        product_id=product.id,
        quantity=25,
        requested_by=UserFactory(),
    )
    workflow.approve(transfer_id=transfer.id, approved_by=ManagerFactory())

    real_adjust = workflow.engine.adjust
    calls = []

    def fail_second_leg(**kwargs):
        calls.append(kwargs["movement_type"])
        if len(calls) == 2:
            raise RuntimeError("crash between legs")
        return real_adjust(**kwargs)

    with mock.patch.object(workflow.engine, "adjust", side_effect=fail_second_leg):
        with pytest.raises(RuntimeError):
            workflow.process(transfer_id=transfer.id)

    assert calls == [MovementType.TRANSFER_OUT, MovementType.TRANSFER_IN]
    transfer.refresh_from_db()
    assert transfer.status == TransferStatus.APPROVED
    assert _quantity(source, product) == 100
    assert _quantity(target, product) == 0
    assert not StockMovement.objects.filter(transfer=transfer).exists()


@pytest.mark.django_db
def test_status_changes_are_logged(stocked, caplog):
    source, target, product = stocked
    workflow = TransferWorkflow()

    with caplog.at_level("INFO", logger="stockledger.transfers"):
        transfer = workflow.request(
            from_warehouse_id=source.id,
            to_warehouse_id=target.id,
            product_id=product.id,
            quantity=5,
            requested_by=UserFactory(),
        )
        workflow.cancel(transfer_id=transfer.id)

    records = [r for r in caplog.records if r.getMessage() == "transfer.status_changed"]
    assert [(r.status_from, r.status_to) for r in records] == [
        (None, TransferStatus.PENDING),
        (TransferStatus.PENDING, TransferStatus.CANCELLED),
    ]


@pytest.mark.django_db
def test_foreign_movement_under_a_leg_key_blocks_processing(stocked):
    source, target, product = stocked
    workflow = TransferWorkflow()
    transfer = workflow.request(
        from_warehouse_id=source.id,
        to_warehouse_id=target.id,
        product_id=product.id,
        quantity=30,
        requested_by=UserFactory(),
    )
    workflow.approve(transfer_id=transfer.id, approved_by=ManagerFactory())
    # A plain outbound that happens to carry the leg's key is not the leg.
    AdjustmentEngine().adjust(
        warehouse_id=source.id,
        product_id=product.id,
        delta=-30,
        reason="outbound",
        idempotency_key=f"transfer:{transfer.id}:out",
    )

    with pytest.raises(InvalidArgument):
        workflow.process(transfer_id=transfer.id)

    transfer.refresh_from_db()
    assert transfer.status == TransferStatus.APPROVED
    assert (_quantity(source, product), _quantity(target, product)) == (70, 0)
    assert not StockMovement.objects.filter(transfer=transfer).exists()


@pytest.mark.django_db
@pytest.mark.parametrize("status", [TransferStatus.COMPLETED, TransferStatus.CANCELLED])
def test_finished_transfers_report_their_final_status(status):
    transfer = WarehouseTransferFactory(status=status)
    assert transfer.is_terminal

    with pytest.raises(InvalidTransition) as excinfo:
        TransferWorkflow().cancel(transfer_id=transfer.id)

    assert excinfo.value.message == f"Transfer is already {status.value}"
    assert not WarehouseTransferFactory(status=TransferStatus.APPROVED).is_terminal
