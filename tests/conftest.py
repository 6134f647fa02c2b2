import os
import tempfile
from decimal import Decimal
from typing import Generator

# Point the app at throwaway storage before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="eshop-uploads-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from eshop import config, crud, schemas
from eshop.auth import create_access_token
from eshop.db import Base, get_db
from eshop.main import app

API = "/api/v1"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def upload_dir(tmp_path):
    previous = config.get_settings().upload_dir
    config.configure(upload_dir=str(tmp_path))
    yield tmp_path
    config.configure(upload_dir=previous)


@pytest.fixture(scope="function")
def client(db_session, upload_dir):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db_session):
    return crud.register_user(
        db_session,
        schemas.UserRegister(name="Admin", email="admin@example.com", password="adminpass", is_admin=True),
        allow_admin=True,
    )


@pytest.fixture
def customer(db_session):
    return crud.register_user(
        db_session,
        schemas.UserRegister(name="Carol", email="carol@example.com", password="carolpass"),
    )


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin.id, True)}"}


@pytest.fixture
def customer_headers(customer):
    return {"Authorization": f"Bearer {create_access_token(customer.id, False)}"}


def make_category(db, name="Shoes"):
    return crud.create_category(db, schemas.CategoryCreate(name=name, icon="icon", color="#fff"))


def make_product(db, category, name="Product", price="10.00", **extra):
    fields = {"description": f"{name} description", "count_in_stock": 5}
    fields.update(extra)
    return crud.create_product(
        db,
        schemas.ProductCreate(name=name, price=Decimal(price), category=category.id, **fields),
        image_url=f"http://testserver/public/uploads/{name}.png",
    )


def order_payload(user_id, items):
    return {
        "orderItems": [{"product": pid, "quantity": qty} for pid, qty in items],
        "shippingAddress1": "1 Main Street",
        "city": "Springfield",
        "zip": "12345",
        "country": "US",
        "phone": "555-0100",
        "user": user_id,
    }
