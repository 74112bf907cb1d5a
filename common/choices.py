"""Shared enumerations and choices used across apps."""

from django.db import models


class UserRole(models.TextChoices):
    ADMIN = "admin", "Admin"
    MANAGER = "manager", "Manager"
    VIEWER = "viewer", "Viewer"


class ProductCategory(models.TextChoices):
    ELECTRONICS = "electronics", "Electronics"
    CLOTHING = "clothing", "Clothing"
    BOOKS = "books", "Books"
    HOME = "home", "Home"
    BEAUTY = "beauty", "Beauty"
    SPORTS = "sports", "Sports"
    TOYS = "toys", "Toys"
    OTHER = "other", "Other"


class PermissionLevel(models.TextChoices):
    """Per-warehouse access levels, ordered from weakest to strongest."""

    READ = "read", "Read"
    WRITE = "write", "Write"
    ADMIN = "admin", "Admin"


class MovementType(models.TextChoices):
    INBOUND = "inbound", "Inbound"
    OUTBOUND = "outbound", "Outbound"
    ADJUSTMENT = "adjustment", "Adjustment"
    TRANSFER_IN = "transfer_in", "Transfer in"
    TRANSFER_OUT = "transfer_out", "Transfer out"


class TransferStatus(models.TextChoices):
    """Lifecycle statuses for warehouse transfers."""

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class Platform(models.TextChoices):
    AMAZON = "amazon", "Amazon"
    FLIPKART = "flipkart", "Flipkart"
    MEESHO = "meesho", "Meesho"
    WEBSITE = "website", "Website"


class OrderStatus(models.TextChoices):
    """Lifecycle statuses for orders."""

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    RETURNED = "returned", "Returned"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
