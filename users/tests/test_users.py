import pytest
from users.tests.factories import AdminUserFactory, ManagerFactory, UserFactory


@pytest.mark.django_db
def test_email_is_normalized_on_save():
    user = UserFactory(email="  Ops.Lead@Example.COM ")
    user.refresh_from_db()
    assert user.email == "ops.lead@example.com"


@pytest.mark.django_db
def test_roles_drive_console_flags():
    viewer = UserFactory()
    manager = ManagerFactory()
    admin = AdminUserFactory()
    superuser = UserFactory(is_superuser=True)

    assert (viewer.is_console_admin, viewer.can_approve) == (False, False)
    assert (manager.is_console_admin, manager.can_approve) == (False, True)
    assert (admin.is_console_admin, admin.can_approve) == (True, True)
    assert superuser.is_console_admin
