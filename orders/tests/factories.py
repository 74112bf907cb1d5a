from decimal import Decimal

import factory
from common.choices import Platform
from factory.django import DjangoModelFactory
from orders.models import Order


class OrderFactory(DjangoModelFactory):
    """Order row written directly, without touching stock."""

    class Meta:
        model = Order

    platform = Platform.WEBSITE
    platform_order_id = factory.Sequence(lambda n: f"WEB-{n:06d}")
    customer_name = factory.Faker("name")
    warehouse = factory.SubFactory("warehouses.tests.factories.WarehouseFactory")
    product = factory.SubFactory("catalog.tests.factories.ProductFactory")
    quantity = 1
    unit_price = Decimal("100.00")
    total_amount = factory.LazyAttribute(lambda o: o.unit_price * o.quantity)
