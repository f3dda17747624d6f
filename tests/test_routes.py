from decimal import Decimal

from teastore.extensions import db
from teastore.model import Order, User


def test_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.get_json()["ok"] is True


def test_register_login_and_me(client):
    r = client.post("/auth/register", json={"email": "Tea@Example.com", "password": "secret123", "name": "Tea Lover"})
    assert r.status_code == 201
    body = r.get_json()
    assert body["status"] is True
    assert body["data"]["user"]["role"] == "admin"  # first account

    r = client.post("/auth/login", json={"email": "tea@example.com", "password": "secret123"})
    assert r.status_code == 200
    token = r.get_json()["data"]["token"]

    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    data = r.get_json()["data"]
    assert data["discounts"]["first_order_discount_available"] is True
    assert data["loyalty"]["current_level"]["level"] == 1

    r = client.post("/auth/login", json={"email": "tea@example.com", "password": "wrong"})
    assert r.status_code == 401


def test_guest_cart_and_order(client, make_product, customer):
    tea = make_product(price=12)

    r = client.post("/cart/items", json={"product_id": tea.id, "quantity": 50})
    assert r.status_code == 201
    cart = r.get_json()["data"]
    assert cart["owner"] == "guest"
    assert cart["pricing"]["final_total"] == 600

    r = client.post("/orders", json={**customer, "total": 600})
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["order"]["money"]["total"] == 600
    assert data["pricing"]["consumed_first_order_discount"] is False

    r = client.get("/cart")
    assert r.get_json()["data"]["items"] == []


def test_tampered_price_is_ignored(client, make_user, make_product, auth_header, customer):
    user = make_user(email="t@example.com", first_order_discount_used=True)
    tea = make_product(price=100)

    r = client.post(
        "/orders",
        json={**customer, "items": [{"product_id": tea.id, "price": 1, "quantity": 10}], "total": 10},
        headers=auth_header(user),
    )
    assert r.status_code == 201
    order = r.get_json()["data"]["order"]
    assert order["money"]["total"] == 1000
    assert db.session.get(Order, order["id"]).client_total == 10


def test_first_order_discount_only_once_over_http(client, make_user, make_product, auth_header, customer):
    user = make_user(email="once@example.com")
    tea = make_product(price=100)
    headers = auth_header(user)
    body = {**customer, "items": [{"product_id": tea.id, "quantity": 10}]}

    first = client.post("/orders", json=body, headers=headers).get_json()["data"]
    second = client.post("/orders", json=body, headers=headers).get_json()["data"]

    assert first["order"]["money"]["total"] == 800
    assert first["order"]["money"]["first_order_discount_amount"] == 200
    assert second["order"]["money"]["total"] == 1000


def test_order_validation_errors(client, make_product, customer):
    tea = make_product(price=10)

    r = client.post("/orders", json={**customer, "items": []})
    assert r.status_code == 400
    assert r.get_json()["message"] == "cart is empty"

    r = client.post("/orders", json={**customer, "items": [{"product_id": tea.id, "quantity": -1}]})
    assert r.status_code == 400

    r = client.post("/orders", json={**customer, "items": [{"product_id": 4242, "quantity": 1}]})
    assert r.status_code == 404
    assert r.get_json()["data"]["product_id"] == 4242
    assert Order.query.count() == 0


def test_user_cart_quote_with_loyalty(client, make_user, make_product, auth_header):
    user = make_user(email="loyal@example.com", xp=16000, phone_verified=True, first_order_discount_used=True)
    tea = make_product(price=20)
    headers = auth_header(user)

    r = client.post("/cart/items", json={"product_id": tea.id, "quantity": 100}, headers=headers)
    assert r.get_json()["data"]["owner"] == "user"

    r = client.get("/cart/quote", headers=headers)
    pricing = r.get_json()["data"]["pricing"]
    assert pricing["subtotal"] == 2000
    assert pricing["breakdown"]["loyalty_amount"] == 300
    assert pricing["final_total"] == 1700

    r = client.patch(f"/cart/items/{tea.id}", json={"quantity": 50}, headers=headers)
    assert r.get_json()["data"]["pricing"]["final_total"] == 850

    r = client.delete(f"/cart/items/{tea.id}", headers=headers)
    assert r.get_json()["data"]["items"] == []
    assert client.get("/cart/quote", headers=headers).status_code == 422


def test_cancel_over_http_restores_discount(client, make_user, make_product, auth_header, customer):
    user = make_user(email="cancel@example.com")
    tea = make_product(price=100)
    headers = auth_header(user)
    order = client.post("/orders", json={**customer, "items": [{"product_id": tea.id, "quantity": 1}]},
                        headers=headers).get_json()["data"]["order"]

    r = client.post(f"/orders/{order['id']}/cancel", headers=headers)
    assert r.status_code == 200
    assert r.get_json()["data"]["order"]["status"] == "cancelled"
    assert db.session.get(User, user.id).first_order_discount_used is False

    r = client.post(f"/orders/{order['id']}/cancel", headers=headers)
    assert r.status_code == 409


def test_admin_flow(client, make_user, make_product, auth_header, customer):
    admin = make_user(email="admin@example.com", role="admin")
    buyer = make_user(email="buyer@example.com", phone="+79990000001")
    tea = make_product(price=Decimal("123.45"))
    admin_h = auth_header(admin)

    r = client.get("/admin/users/search", query_string={"phone": "+79990000001"}, headers=admin_h)
    assert r.get_json()["data"]["user"]["id"] == buyer.id

    assert client.patch(f"/admin/users/{buyer.id}/phone-verified", json={"verified": True}, headers=admin_h).status_code == 200
    assert client.patch(f"/admin/users/{buyer.id}/xp", json={"xp": 3000}, headers=admin_h).status_code == 200
    assert client.patch(f"/admin/users/{buyer.id}/discount", json={"percent": 10}, headers=admin_h).status_code == 200
    assert client.patch(f"/admin/users/{buyer.id}/discount", json={"percent": 101}, headers=admin_h).status_code == 400

    order = client.post("/orders", json={**customer, "items": [{"product_id": tea.id, "quantity": 10}]},
                        headers=auth_header(buyer)).get_json()["data"]["order"]
    # 1234.5 -> 987.6 -> 938.22 -> 844.398
    assert order["money"]["total"] == 844
    assert order["discounts"] == {
        "loyalty_percent": 5,
        "custom_percent": 10,
        "first_order_discount_applied": True,
        "custom_discount_applied": True,
    }

    r = client.get("/admin/orders", query_string={"status": "pending"}, headers=admin_h)
    assert r.get_json()["data"]["total"] == 1

    r = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "completed"}, headers=admin_h)
    assert r.status_code == 200
    assert r.get_json()["data"]["order"]["xp_awarded"] == 844
    assert db.session.get(User, buyer.id).xp == 3844

    r = client.patch(f"/admin/orders/{order['id']}/status", json={"status": "bogus"}, headers=admin_h)
    assert r.status_code == 400


def test_admin_routes_require_role(client, make_user, auth_header):
    user = make_user(email="plain@example.com")
    assert client.get("/admin/orders").status_code == 401
    assert client.get("/admin/orders", headers=auth_header(user)).status_code == 403


def test_login_merges_guest_cart(client, make_user, make_product):
    make_user(email="merge@example.com")
    tea = make_product(price=10)
    client.post("/cart/items", json={"product_id": tea.id, "quantity": 25})

    r = client.post("/auth/login", json={"email": "merge@example.com", "password": "secret123"})
    assert r.get_json()["data"]["cart_merged"] == 1
    token = r.get_json()["data"]["token"]

    cart = client.get("/cart", headers={"Authorization": f"Bearer {token}"}).get_json()["data"]
    assert cart["owner"] == "user"
    assert cart["items"][0]["quantity"] == 25
    assert client.get("/cart").get_json()["data"]["items"] == []


def test_order_totals_round_half_up_everywhere(client, make_product, customer):
    tea = make_product(price=Decimal("2.5"))

    r = client.post("/orders", json={**customer, "items": [{"product_id": tea.id, "quantity": 1}]})
    data = r.get_json()["data"]

    assert data["pricing"]["final_total"] == 3
    assert data["order"]["money"]["total"] == 3
    assert data["order"]["items"][0]["line_total"] == 3
