from decimal import Decimal

from conftest import PASSWORD, login
from storefront.models import Lifecycle, UserRole

ADDRESS = {
    "first_name": "Alice",
    "last_name": "Smith",
    "address_line": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "country": "US",
    "zip_code": "62701",
}


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


async def test_register_login_and_profile(client):
    response = await client.post("/api/auth/register", json={
        "username": "carol", "email": "carol@example.com", "password": PASSWORD,
    })
    assert response.status_code == 201
    assert response.json()["data"]["role"] == "customer"
    assert "password_hash" not in response.json()["data"]

    headers = await login(client, "carol")
    me = await client.get("/api/auth/me", headers=headers)
    assert me.json()["data"]["username"] == "carol"


async def test_errors_share_one_shape(client, customer):
    response = await client.post("/api/auth/login", json={"login": "alice", "password": "Nope1234!"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Incorrect username/email or password", "details": None}


async def test_customer_cannot_reach_admin(client, customer):
    headers = await login(client, "alice")

    response = await client.get("/api/admin/dashboard", headers=headers)

    assert response.status_code == 403
    assert response.json()["success"] is False


async def test_unknown_sort_key_is_rejected(client, make_user):
    await make_user("root", role=UserRole.ADMIN)
    headers = await login(client, "root")

    response = await client.get("/api/admin/products", params={"sort": "password_hash"}, headers=headers)
    assert response.status_code == 422

    response = await client.get("/api/admin/products", params={"sort": "price", "direction": "desc"}, headers=headers)
    assert response.status_code == 200


async def test_catalog_hides_inactive_products(client, make_product):
    await make_product("Visible")
    await make_product("Draft", lifecycle=Lifecycle.DISABLED)

    response = await client.get("/api/catalog/products")

    page = response.json()["data"]
    assert [p["name"] for p in page["items"]] == ["Visible"]
    assert page["total"] == 1


async def test_cart_to_order_through_cookie(client, customer, make_product):
    product = await make_product("Widget", "10.00", stock=5)

    added = await client.post("/api/cart/items", json={"product_id": product.id, "quantity": 2})
    assert added.status_code == 200
    assert added.json()["data"]["item_count"] == 2

    cart = (await client.get("/api/cart")).json()["data"]
    assert Decimal(cart["sub_total"]) == Decimal("20.00")
    assert Decimal(cart["total_amount"]) == Decimal("31.59")

    too_many = await client.put(f"/api/cart/items/{product.id}", json={"quantity": 9})
    assert too_many.status_code == 409

    headers = await login(client, "alice")
    placed = await client.post(
        "/api/cart/checkout",
        json={"payment_method": "paypal", "new_address": ADDRESS},
        headers=headers,
    )
    assert placed.status_code == 200, placed.text
    order = placed.json()["data"]["order"]
    assert order["status"] == "pending"
    assert order["order_number"].startswith("ORD-")

    assert (await client.get("/api/cart")).json()["data"]["item_count"] == 0
    mine = (await client.get("/api/account/orders", headers=headers)).json()["data"]
    assert [o["id"] for o in mine["items"]] == [order["id"]]


async def test_checkout_with_empty_cart_fails(client, customer):
    headers = await login(client, "alice")

    response = await client.post(
        "/api/cart/checkout", json={"payment_method": "paypal", "new_address": ADDRESS}, headers=headers
    )

    assert response.status_code == 422
    assert response.json()["error"] == "Cart is empty"


async def test_contact_form_and_admin_reply(client, make_user):
    await make_user("root", role=UserRole.ADMIN)
    sent = await client.post("/api/content/contact", json={
        "name": "Visitor", "email": "v@example.com", "subject": "Hi", "message": "Hello there",
    })
    assert sent.status_code == 201
    message_id = sent.json()["data"]["id"]

    headers = await login(client, "root")
    replied = await client.post(f"/api/admin/contact/{message_id}/reply", json={"reply": "Hello back"}, headers=headers)

    assert replied.status_code == 200
    assert replied.json()["data"]["is_replied"] is True


async def test_admin_dashboard(client, make_user, make_product):
    await make_user("root", role=UserRole.ADMIN)
    await make_product("Scarce", stock=2)
    await make_product("Plenty", stock=500)
    headers = await login(client, "root")

    response = await client.get("/api/admin/dashboard", headers=headers)

    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["active_products"] == 2
    assert [p["name"] for p in data["low_stock_products"]] == ["Scarce"]
    assert data["users"]["admin_users"] == 1
    assert data["orders"]["total_orders"] == 0
    assert data["recent_orders"] == []
