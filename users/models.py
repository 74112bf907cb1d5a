"""User model for the administration console.

Authentication itself is handled upstream; this model only carries what the
inventory core needs to attribute movements and approvals to a person, plus
the coarse console role carried over from the original admin tool.
"""

from common.choices import UserRole
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user with unique email and a console role.

    Fields:
    - email: unique at the database level (normalized to lowercase).
    - role: admin, manager or viewer. Admins may write to every warehouse.
    """

    ROLE_ADMIN = UserRole.ADMIN
    ROLE_MANAGER = UserRole.MANAGER
    ROLE_VIEWER = UserRole.VIEWER
    ROLE_CHOICES = UserRole.choices

    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_VIEWER, db_index=True)

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_console_admin(self) -> bool:
        return bool(self.is_superuser or self.role == self.ROLE_ADMIN)

    @property
    def can_approve(self) -> bool:
        return self.is_console_admin or self.role == self.ROLE_MANAGER
