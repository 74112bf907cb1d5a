import pytest
from catalog.services import deactivate_product
from catalog.tests.factories import ProductFactory
from common.choices import ProductCategory
from inventory.exceptions import NotFound
from inventory.services import AdjustmentEngine
from rest_framework.test import APIClient
from users.tests.factories import UserFactory
from warehouses.tests.factories import WarehouseFactory


@pytest.mark.django_db
def test_product_list_filters_and_search():
    cable = ProductFactory(name="USB Cable", sku="SKU-CABLE", category=ProductCategory.ELECTRONICS)
    ProductFactory(name="Novel", category=ProductCategory.BOOKS)
    client = APIClient()
    client.force_authenticate(user=UserFactory())

    r = client.get("/api/v1/catalog/products/?category=electronics")
    assert r.status_code == 200
    assert [row["sku"] for row in r.json()["results"]] == ["SKU-CABLE"]

    r = client.get("/api/v1/catalog/products/?search=cable")
    assert [row["id"] for row in r.json()["results"]] == [cable.id]

    r = client.get(f"/api/v1/catalog/products/{cable.id}/")
    assert r.json()["unit_price"] == "100.00"


@pytest.mark.django_db
def test_products_require_authentication():
    assert APIClient().get("/api/v1/catalog/products/").status_code in (401, 403)


@pytest.mark.django_db
def test_deactivated_product_blocks_new_stock_operations():
    warehouse = WarehouseFactory()
    product = ProductFactory()
    engine = AdjustmentEngine()
    engine.adjust(warehouse_id=warehouse.id, product_id=product.id, delta=5, reason="inbound")

    deactivate_product(product_id=product.id)

    product.refresh_from_db()
    assert product.is_active is False
    with pytest.raises(NotFound):
        engine.adjust(warehouse_id=warehouse.id, product_id=product.id, delta=-1, reason="outbound")
