from typing import Generator
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agrofix import config, schemas

# Tests build their own stores; never seed the process-wide one
config.configure(seed_data=False)

from agrofix.auth import hash_password
from agrofix.db import Base
from agrofix.main import app, get_storage
from agrofix.storage import DatabaseStorage, MemStorage

ADMIN_PASSWORD = "admin123"
USER_PASSWORD = "buyer-pass"


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


@pytest.fixture(scope="function", params=["memory", "database"])
def storage(request):
    # Every test using this fixture runs against both backends
    if request.param == "memory":
        return MemStorage()
    return DatabaseStorage(request.getfixturevalue("db_session"))


@pytest.fixture(scope="function")
def client(storage):
    # Override dependency to use the same store
    def override_get_storage():
        yield storage
    app.dependency_overrides[get_storage] = override_get_storage
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin(storage):
    return storage.create_user(
        schemas.UserCreate(username="admin", password=ADMIN_PASSWORD),
        hash_password(ADMIN_PASSWORD),
        is_admin=True,
    )


@pytest.fixture
def buyer(storage):
    # usernames double as the email orders are matched against
    return storage.create_user(
        schemas.UserCreate(username="buyer@example.com", password=USER_PASSWORD),
        hash_password(USER_PASSWORD),
    )


def bearer(client, username, password):
    """Log in and return bearer headers, dropping the session cookie the login set."""
    r = client.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture
def admin_headers(client, admin):
    return bearer(client, "admin", ADMIN_PASSWORD)


@pytest.fixture
def buyer_headers(client, buyer):
    return bearer(client, "buyer@example.com", USER_PASSWORD)


@pytest.fixture
def tomatoes(storage):
    return storage.create_product(
        schemas.ProductCreate(name="Tomatoes", category="Vegetables", price=2500, min_order_quantity=10)
    )


@pytest.fixture
def make_order():
    def build(product, quantity, email="guest@example.com", **overrides):
        payload = {
            "buyerName": "Sam Buyer",
            "businessName": "Sam's Diner",
            "email": email,
            "phone": "9123456789",
            "deliveryAddress": "456 Elm Street",
            "city": "Springfield",
            "state": "Illinois",
            "pincode": "62704",
            "preferredDeliveryDate": "2030-05-01",
            "items": [
                {
                    "productId": product.id,
                    "name": product.name,
                    "price": product.price,
                    "quantity": quantity,
                    "subtotal": product.price * quantity,
                }
            ],
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def login(client):
    def headers_for(username, password):
        return bearer(client, username, password)
    return headers_for
