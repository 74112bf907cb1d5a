"""Catalog app models.

Products are shared across warehouses; per-warehouse stock lives in
``inventory.Inventory``. Products are never hard-deleted so that stock
movements and transfers keep a valid reference.
"""

from common.choices import ProductCategory
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ProductQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)


class Product(TimeStampedModel):
    """Sellable item identified by a globally unique SKU."""

    CATEGORY_CHOICES = ProductCategory.choices

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=16, choices=CATEGORY_CHOICES, default=ProductCategory.OTHER, db_index=True)
    # Selling price and landed cost; either may be unknown.
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    brand = models.CharField(max_length=120, blank=True)
    barcode = models.CharField(max_length=64, blank=True)
    supplier = models.CharField(max_length=120, blank=True)
    weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    dimensions = models.CharField(max_length=120, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )

    objects = ProductQuerySet.as_manager()

    class Meta:
        ordering = ["name", "id"]
        constraints = [
            models.CheckConstraint(
                name="product_unit_price_non_negative",
                condition=models.Q(unit_price__gte=0) | models.Q(unit_price__isnull=True),
            ),
            models.CheckConstraint(
                name="product_cost_price_non_negative",
                condition=models.Q(cost_price__gte=0) | models.Q(cost_price__isnull=True),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.sku} {self.name}"
