import os
import random

from locust import HttpUser, between, task

API = os.getenv("API_URL", "/api/v1")
SORTS = ["name", "priceAsc", "priceDesc", "rating"]


class ShopperUser(HttpUser):
    """Browses the catalogue and places orders.

    Expects a seeded catalogue and a customer account given by
    LOCUST_EMAIL / LOCUST_PASSWORD.
    """

    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.token = None
        self.user_id = None
        self.product_ids = []
        email = os.getenv("LOCUST_EMAIL")
        password = os.getenv("LOCUST_PASSWORD")
        if email and password:
            r = self.client.post(f"{API}/users/login", json={"email": email, "password": password})
            if r.status_code == 200:
                self.token = r.json()["token"]
                from jwt import decode
                self.user_id = decode(self.token, options={"verify_signature": False})["userId"]

    @task(5)
    def browse_products(self):
        params = {"sort": random.choice(SORTS), "pageIndex": [random.randint(1, 3), 10]}
        r = self.client.get(f"{API}/products", params=params, name=f"{API}/products")
        if r.status_code == 200:
            self.product_ids = [p["id"] for p in r.json()["products"]] or self.product_ids

    @task(2)
    def featured(self):
        self.client.get(f"{API}/products/get/featured/5", name=f"{API}/products/get/featured")

    @task(1)
    def place_order(self):
        if not self.token or not self.product_ids:
            return
        items = [
            {"product": pid, "quantity": random.randint(1, 3)}
            for pid in random.sample(self.product_ids, k=min(2, len(self.product_ids)))
        ]
        self.client.post(
            f"{API}/orders",
            json={
                "orderItems": items,
                "shippingAddress1": "1 Load Street",
                "city": "Testville",
                "zip": "00000",
                "country": "US",
                "phone": "555-0100",
                "user": self.user_id,
            },
            headers={"Authorization": f"Bearer {self.token}"},
        )
