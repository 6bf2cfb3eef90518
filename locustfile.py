from locust import HttpUser, task, between
import random


class BuyerUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        r = self.client.get("/api/products")
        self.products = r.json() if r.status_code == 200 else []

    @task(5)
    def browse_catalog(self):
        self.client.get("/api/products")

    @task(2)
    def place_order(self):
        if not self.products:
            return
        product = random.choice(self.products)
        quantity = product["minOrderQuantity"] * random.randint(1, 3)
        item = {
            "productId": product["id"],
            "name": product["name"],
            "price": product["price"],
            "quantity": quantity,
            "subtotal": product["price"] * quantity,
        }
        r = self.client.post("/api/orders", json={
            "buyerName": f"Buyer {random.randint(1, 1_000_000)}",
            "email": "loadtest@example.com",
            "phone": "5550000000",
            "deliveryAddress": "1 Market Road",
            "city": "Springfield",
            "state": "Illinois",
            "pincode": "62704",
            "preferredDeliveryDate": "2030-01-01",
            "items": [item],
        })
        if r.status_code == 201:
            self.client.get(f"/api/track/{r.json()['orderNumber']}", name="/api/track/[orderNumber]")
