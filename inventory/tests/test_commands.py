from io import StringIO

import pytest
from catalog.tests.factories import ProductFactory
from django.core.management import CommandError, call_command
from inventory.services import AdjustmentEngine
from inventory.tests.factories import InventoryFactory
from warehouses.tests.factories import WarehouseFactory


@pytest.mark.django_db
def test_check_inventory_ledger_passes_for_engine_written_cells():
    w = WarehouseFactory()
    engine = AdjustmentEngine()
    for product in (ProductFactory(), ProductFactory()):
        engine.adjust(warehouse_id=w.id, product_id=product.id, delta=9, reason="inbound")
        engine.adjust(warehouse_id=w.id, product_id=product.id, delta=-4, reason="outbound")
    out = StringIO()

    call_command("check_inventory_ledger", stdout=out)

    assert "Cells verified: 2" in out.getvalue()


@pytest.mark.django_db
def test_check_inventory_ledger_reports_breaks():
    cell = InventoryFactory(quantity=7)
    err = StringIO()

    with pytest.raises(CommandError):
        call_command("check_inventory_ledger", stdout=StringIO(), stderr=err)

    assert f"warehouse={cell.warehouse_id}" in err.getvalue()
    assert "expected=0 found=7" in err.getvalue()


@pytest.mark.django_db
def test_check_inventory_ledger_scoped_to_warehouse():
    InventoryFactory(quantity=7)
    clean = WarehouseFactory()
    out = StringIO()

    call_command("check_inventory_ledger", "--warehouse", str(clean.id), stdout=out)

    assert "Cells verified: 0" in out.getvalue()


@pytest.mark.django_db
def test_low_stock_report():
    w = WarehouseFactory(name="Depot")
    InventoryFactory(warehouse=w, quantity=2, product=ProductFactory(sku="SKU-LOW"))
    InventoryFactory(warehouse=w, quantity=200)
    out = StringIO()

    call_command("low_stock_report", "--warehouse", str(w.id), stdout=out)

    text = out.getvalue()
    assert "Depot\tSKU-LOW\tqty=2" in text
    assert "Low-stock cells: 1" in text
