from fastapi.testclient import TestClient

from agrofix import schemas
from agrofix.main import app, get_storage
from agrofix.storage import MemStorage


def test_order_number_stable_across_status_changes(client, admin_headers, tomatoes, make_order):
    # Guard against regressions: the order number is assigned once
    order = client.post("/api/orders", json=make_order(tomatoes, 10)).json()
    for status in ["In Progress", "Delivered"]:
        r = client.put(f"/api/orders/{order['id']}/status", json={"status": status}, headers=admin_headers)
        assert r.json()["orderNumber"] == order["orderNumber"]
    assert client.get(f"/api/track/{order['orderNumber']}").json()["status"] == "Delivered"


def test_deleting_product_keeps_order_snapshot(client, admin_headers, tomatoes, make_order):
    order = client.post("/api/orders", json=make_order(tomatoes, 10)).json()
    client.put(f"/api/products/{tomatoes.id}", json={"price": 9999}, headers=admin_headers)
    client.delete(f"/api/products/{tomatoes.id}", headers=admin_headers)

    fetched = client.get(f"/api/orders/{order['id']}", headers=admin_headers).json()
    assert fetched["items"][0]["price"] == 2500
    assert fetched["items"][0]["name"] == "Tomatoes"
    assert fetched["totalAmount"] == 25000


class BrokenStorage(MemStorage):
    def get_products(self, category=None, q=None):
        raise RuntimeError("backend unavailable")


def test_unexpected_errors_become_500():
    def override_get_storage():
        yield BrokenStorage()
    app.dependency_overrides[get_storage] = override_get_storage
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            r = c.get("/api/products")
        assert r.status_code == 500
        assert r.json() == {"detail": "Internal server error"}
    finally:
        app.dependency_overrides.clear()


def test_validation_message_is_readable():
    from agrofix.main import describe_validation_errors

    errors = [
        {"loc": ("body", "price"), "msg": "Input should be greater than 0"},
        {"loc": ("body",), "msg": "Value error, totalAmount must equal the sum of item subtotals"},
    ]
    assert describe_validation_errors(errors) == (
        "price: Input should be greater than 0; "
        "Value error, totalAmount must equal the sum of item subtotals"
    )
    assert describe_validation_errors([]) == "Invalid request data"


def test_product_update_null_only_clears_optional_fields():
    patch = schemas.ProductUpdate.model_validate({"name": None, "description": None, "price": 300})
    assert patch.changes() == {"description": None, "price": 300}
