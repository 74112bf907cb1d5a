"""Catalog mutations."""

import logging

from django.db import transaction
from django.shortcuts import get_object_or_404

from .models import Product

logger = logging.getLogger("stockledger.catalog")


@transaction.atomic
def deactivate_product(*, product_id: int) -> Product:
    """Soft-delete a product.

    Stock rows and movement history keep pointing at the product; inactive
    products are simply rejected by new stock operations.
    """

    product = get_object_or_404(Product.objects.select_for_update(), id=product_id)
    if not product.is_active:
        return product
    product.is_active = False
    product.save(update_fields=["is_active", "updated_at"])
    logger.info("catalog.product_deactivated", extra={"product_id": product.id, "sku": product.sku})
    return product
