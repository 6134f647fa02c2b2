from eshop import crud, models
from eshop.create_admin import create_admin


def test_create_admin_creates_user(db_session):
    user = create_admin(db_session, "root@example.com", "rootpass", name="Root")
    assert user.is_admin is True
    assert user.password_hash != "rootpass"
    assert crud.authenticate(db_session, "root@example.com", "rootpass").id == user.id


def test_create_admin_is_idempotent_and_promotes(db_session, customer):
    first = create_admin(db_session, "root@example.com", "rootpass")
    again = create_admin(db_session, "root@example.com", "other")
    assert again.id == first.id
    assert db_session.query(models.User).filter(models.User.email == "root@example.com").count() == 1

    promoted = create_admin(db_session, customer.email, "ignored")
    assert promoted.id == customer.id
    assert promoted.is_admin is True
    # existing password is kept
    assert crud.authenticate(db_session, customer.email, "carolpass").id == customer.id
