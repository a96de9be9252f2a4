#!/usr/bin/env python3
"""
Integration Test Suite for the Storefront

Usage:
    1. Start the API: python manage_storefront.py run
    2. Create an admin: python manage_storefront.py create-admin admin admin@example.com
    3. Install dependencies: pip install requests
    4. Run the script: STOREFRONT_ADMIN=admin STOREFRONT_ADMIN_PASSWORD=... python tests/integration_test.py

This script tests the full flow:
    - Authentication (Register/Login)
    - Catalog management and browsing
    - Cookie cart
    - Checkout and order history
    - Admin fulfilment (payment capture, shipping)
    - Content (blog, FAQ, contact form)
    - Security/Negative Tests

Output:
    - Console logs with pass/fail status
    - integration_test_results.json report
"""
import json
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

import requests

# Configuration
BASE_URL = os.getenv("STOREFRONT_URL", "http://localhost:8000")
ADMIN_LOGIN = os.getenv("STOREFRONT_ADMIN", "admin")
ADMIN_PASSWORD = os.getenv("STOREFRONT_ADMIN_PASSWORD", "Admin123!")
RESULTS_FILE = "integration_test_results.json"

ADDRESS = {
    "first_name": "Test",
    "last_name": "Customer",
    "address_line": "123 Test St",
    "city": "Springfield",
    "state": "IL",
    "country": "US",
    "zip_code": "62701",
}

# Colors
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'

class TestRunner:
    def __init__(self):
        self.results = []
        # The cart rides in a cookie, so the customer needs its own session
        self.session = requests.Session()
        self.store: Dict[str, Any] = {}
        self.start_time = time.time()

    def log(self, message: str, color: str = Colors.ENDC):
        print(f"{color}{message}{Colors.ENDC}")

    def save_result(self, name: str, status: str, duration: float, error: str = None):
        self.results.append({
            "test_name": name,
            "status": status,
            "duration": duration,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
        color = Colors.GREEN if status == "PASS" else Colors.FAIL
        self.log(f"[{status}] {name} ({duration:.4f}s)", color)
        if error:
            self.log(f"  Error: {error}", Colors.FAIL)

    def run_test(self, name: str, func, *args, **kwargs):
        start = time.time()
        try:
            func(*args, **kwargs)
            self.save_result(name, "PASS", time.time() - start)
        except AssertionError as e:
            self.save_result(name, "FAIL", time.time() - start, str(e))
        except (requests.RequestException, KeyError, ValueError) as e:
            self.save_result(name, "ERROR", time.time() - start, repr(e))

    def assert_status(self, response, expected: int):
        if response.status_code != expected:
            raise AssertionError(f"Expected status {expected}, got {response.status_code}. Body: {response.text}")

    def auth(self, who: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.store[who + '_token']}"}

    def save_report(self):
        with open(RESULTS_FILE, "w") as f:
            json.dump({
                "summary": {
                    "total": len(self.results),
                    "passed": len([r for r in self.results if r["status"] == "PASS"]),
                    "failed": len([r for r in self.results if r["status"] != "PASS"]),
                    "total_duration": time.time() - self.start_time
                },
                "results": self.results
            }, f, indent=2)
        self.log(f"\nTest results saved to {RESULTS_FILE}", Colors.BLUE)

# --- Test Functions ---

def test_health_check(runner: TestRunner):
    resp = runner.session.get(f"{BASE_URL}/health")
    runner.assert_status(resp, 200)
    if resp.json()["status"] != "healthy":
        raise AssertionError("System is not healthy")

# Phase 1: Authentication

def register_customer(runner: TestRunner):
    stamp = int(time.time())
    user_data = {
        "username": f"user_{stamp}",
        "email": f"user_{stamp}@test.com",
        "password": "Password123!",
        "first_name": "Test",
    }
    resp = runner.session.post(f"{BASE_URL}/api/auth/register", json=user_data)
    runner.assert_status(resp, 201)
    if resp.json()["data"]["role"] != "customer":
        raise AssertionError("Self-registration must create a customer")
    runner.store["user_login"] = user_data["username"]
    runner.store["user_password"] = user_data["password"]

def login_users(runner: TestRunner):
    resp = requests.post(f"{BASE_URL}/api/auth/login", json={"login": ADMIN_LOGIN, "password": ADMIN_PASSWORD})
    runner.assert_status(resp, 200)
    runner.store["admin_token"] = resp.json()["data"]["access_token"]

    resp = runner.session.post(f"{BASE_URL}/api/auth/login", json={
        "login": runner.store["user_login"],
        "password": runner.store["user_password"]
    })
    runner.assert_status(resp, 200)
    runner.store["user_token"] = resp.json()["data"]["access_token"]

# Phase 2: Catalog

def create_product(runner: TestRunner):
    headers = runner.auth("admin")
    stamp = int(time.time())

    resp = requests.post(f"{BASE_URL}/api/admin/categories", json={"name": f"Electronics {stamp}"}, headers=headers)
    runner.assert_status(resp, 201)
    runner.store["category_id"] = resp.json()["data"]["id"]

    product_data = {
        "name": f"Integration Test Product {stamp}",
        "description": "A very nice product",
        "price": "19.99",
        "stock_quantity": 100,
        "category_id": runner.store["category_id"],
    }
    resp = requests.post(f"{BASE_URL}/api/admin/products", json=product_data, headers=headers)
    runner.assert_status(resp, 201)
    product = resp.json()["data"]
    runner.store["product_id"] = product["id"]
    runner.store["product_name"] = product["name"]

def list_products(runner: TestRunner):
    resp = runner.session.get(f"{BASE_URL}/api/catalog/products", params={
        "category_id": runner.store["category_id"],
    })
    runner.assert_status(resp, 200)
    products = resp.json()["data"]["items"]
    if not any(p["id"] == runner.store["product_id"] for p in products):
        raise AssertionError("Created product not found in list")

def get_product_details(runner: TestRunner):
    pid = runner.store["product_id"]
    resp = runner.session.get(f"{BASE_URL}/api/catalog/products/{pid}")
    runner.assert_status(resp, 200)
    if resp.json()["data"]["name"] != runner.store["product_name"]:
        raise AssertionError("Product details mismatch")

# Phase 3: Cart

def add_to_cart(runner: TestRunner):
    data = {"product_id": runner.store["product_id"], "quantity": 2}
    resp = runner.session.post(f"{BASE_URL}/api/cart/items", json=data)
    runner.assert_status(resp, 200)

def view_cart(runner: TestRunner):
    resp = runner.session.get(f"{BASE_URL}/api/cart")
    runner.assert_status(resp, 200)
    cart = resp.json()["data"]
    if not cart["lines"]:
        raise AssertionError("Cart is empty")
    if cart["lines"][0]["quantity"] != 2:
        raise AssertionError("Cart quantity mismatch")
    # 2 x 19.99 = 39.98, below free shipping: + 9.99 shipping + 3.20 tax
    if cart["total_amount"] != "53.17":
        raise AssertionError(f"Unexpected cart total {cart['total_amount']}")

# Phase 4: Checkout

def checkout(runner: TestRunner):
    data = {"payment_method": "credit_card", "new_address": ADDRESS}
    resp = runner.session.post(f"{BASE_URL}/api/cart/checkout", json=data, headers=runner.auth("user"))
    runner.assert_status(resp, 200)
    order = resp.json()["data"]["order"]
    runner.store["order_id"] = order["id"]
    if order["status"] != "pending":
        raise AssertionError("Order status should be pending")

def verify_cart_cleared(runner: TestRunner):
    resp = runner.session.get(f"{BASE_URL}/api/cart")
    runner.assert_status(resp, 200)
    if resp.json()["data"]["item_count"] != 0:
        raise AssertionError("Cart not cleared after order")

def verify_order_history(runner: TestRunner):
    resp = runner.session.get(f"{BASE_URL}/api/account/orders", headers=runner.auth("user"))
    runner.assert_status(resp, 200)
    ids = [o["id"] for o in resp.json()["data"]["items"]]
    if runner.store["order_id"] not in ids:
        raise AssertionError("Order missing from the customer's history")

# Phase 5: Fulfilment

def capture_payment(runner: TestRunner):
    headers = runner.auth("admin")
    oid = runner.store["order_id"]
    order = requests.get(f"{BASE_URL}/api/admin/orders/{oid}", headers=headers).json()["data"]
    payment_id = order["payment"]["id"]
    resp = requests.put(f"{BASE_URL}/api/admin/payments/{payment_id}/status", json={"status": "completed"}, headers=headers)
    runner.assert_status(resp, 200)
    if not resp.json()["data"]["transaction_id"]:
        raise AssertionError("Completed payment has no transaction id")

def ship_order(runner: TestRunner):
    headers = runner.auth("admin")
    oid = runner.store["order_id"]
    for status in ("processing", "shipped"):
        resp = requests.put(f"{BASE_URL}/api/admin/orders/{oid}/status", json={
            "status": status, "tracking_number": "TRK-INTEGRATION",
        }, headers=headers)
        runner.assert_status(resp, 200)

    resp = runner.session.post(f"{BASE_URL}/api/account/orders/{oid}/cancel", json={"reason": "Too late"}, headers=runner.auth("user"))
    runner.assert_status(resp, 409)

# Phase 6: Content

def content_flow(runner: TestRunner):
    headers = runner.auth("admin")
    stamp = int(time.time())
    resp = requests.post(f"{BASE_URL}/api/admin/blog", json={
        "title": f"Integration Post {stamp}", "content": "Hello", "author": "Tester",
    }, headers=headers)
    runner.assert_status(resp, 201)
    slug = resp.json()["data"]["slug"]

    resp = runner.session.get(f"{BASE_URL}/api/content/blog/{slug}")
    runner.assert_status(resp, 200)

    resp = requests.post(f"{BASE_URL}/api/admin/faq", json={"question": "Integration?", "answer": "Yes"}, headers=headers)
    runner.assert_status(resp, 201)

    resp = runner.session.post(f"{BASE_URL}/api/content/contact", json={
        "name": "Tester", "email": "tester@test.com", "subject": "Hi", "message": "Integration message",
    })
    runner.assert_status(resp, 201)

# Phase 7: Negative Tests

def negative_tests(runner: TestRunner):
    # Invalid Token
    resp = runner.session.get(f"{BASE_URL}/api/account/orders", headers={"Authorization": "Bearer invalid_token"})
    if resp.status_code != 401:
        raise AssertionError(f"Expected 401 for invalid token, got {resp.status_code}")

    # Customers stay out of the back office
    resp = runner.session.get(f"{BASE_URL}/api/admin/dashboard", headers=runner.auth("user"))
    if resp.status_code != 403:
        raise AssertionError(f"Expected 403 for customer on admin route, got {resp.status_code}")

    # Bad Data (Product create with negative price)
    bad_product = {"name": "Bad", "price": -10, "category_id": runner.store["category_id"]}
    resp = requests.post(f"{BASE_URL}/api/admin/products", json=bad_product, headers=runner.auth("admin"))
    if resp.status_code != 422:
        raise AssertionError(f"Expected 422 for negative price, got {resp.status_code}")

    # Sort keys are a closed set
    resp = requests.get(f"{BASE_URL}/api/admin/products", params={"sort": "password_hash"}, headers=runner.auth("admin"))
    if resp.status_code != 422:
        raise AssertionError(f"Expected 422 for unknown sort key, got {resp.status_code}")


def main():
    runner = TestRunner()
    runner.log("Starting Integration Tests...\n", Colors.HEADER)

    runner.run_test("Health Check", test_health_check, runner)

    runner.run_test("Register Customer", register_customer, runner)
    runner.run_test("Login Users", login_users, runner)

    runner.run_test("Create Product", create_product, runner)
    runner.run_test("List Products", list_products, runner)
    runner.run_test("Get Product Details", get_product_details, runner)

    runner.run_test("Add to Cart", add_to_cart, runner)
    runner.run_test("View Cart", view_cart, runner)

    runner.run_test("Checkout", checkout, runner)
    runner.run_test("Verify Cart Cleared", verify_cart_cleared, runner)
    runner.run_test("Verify Order History", verify_order_history, runner)

    runner.run_test("Capture Payment", capture_payment, runner)
    runner.run_test("Ship Order", ship_order, runner)

    runner.run_test("Content", content_flow, runner)

    runner.run_test("Negative Tests", negative_tests, runner)

    runner.save_report()

    # Exit code
    if any(r["status"] != "PASS" for r in runner.results):
        sys.exit(1)

if __name__ == "__main__":
    main()
