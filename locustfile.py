import os
import random

from locust import HttpUser, task, between

# Accounts are created beforehand, e.g. `storefront create-user --role customer ...`
USERNAME = os.getenv("LOAD_USERNAME", "customer")
PASSWORD = os.getenv("LOAD_PASSWORD", "customer")


class CustomerUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        r = self.client.post("/auth/login", json={"username": USERNAME, "password": PASSWORD, "role": "customer"})
        if r.status_code == 200:
            self.headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
        else:
            self.headers = None

    @task(3)
    def browse_menu(self):
        self.client.get("/menu")

    @task(1)
    def place_order(self):
        if not self.headers:
            return
        menu = [item for item in self.client.get("/menu").json() if item["available"]]
        options = self.client.get("/pickup-options").json()
        if not menu or not options:
            return
        cart = []
        for item in random.sample(menu, k=min(len(menu), random.randint(1, 3))):
            r = self.client.post("/cart/items", json={"cart": cart, "menu_item_id": item["id"]}, headers=self.headers)
            cart = r.json()["items"]
        self.client.post(
            "/orders",
            json={"items": cart, "pickup_time": random.choice(options)["option_text"], "payment_method": "現金"},
            headers=self.headers,
        )

    @task(1)
    def my_orders(self):
        if self.headers:
            self.client.get("/orders", headers=self.headers)
