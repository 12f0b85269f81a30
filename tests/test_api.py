"""
HTTP-level tests through FastAPI's TestClient with bearer tokens.
"""

from common.security import sign_message


def _add(client, headers, book_id, price, title=None):
    return client.post("/api/cart/add", headers=headers, json={
        "bookId": book_id, "title": title or f"Book {book_id}", "price": price, "author": "Someone",
    })


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


# ==========================================
# Auth
# ==========================================

def test_cart_requires_bearer_token(client):
    resp = client.get("/api/cart")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Authentication required"}


def test_invalid_token_is_rejected(client, auth, alice):
    resp = client.get("/api/cart", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_admin_routes_reject_regular_users(client, auth, alice):
    assert client.get("/api/orders/admin", headers=auth(alice)).status_code == 403
    assert client.get("/api/reports/summary", headers=auth(alice)).status_code == 403


# ==========================================
# Cart
# ==========================================

def test_cart_add_list_remove(client, auth, alice):
    resp = _add(client, auth(alice), "OL1W", 420)
    assert resp.status_code == 200
    item = resp.json()["item"]
    assert item["bookId"] == "OL1W"
    assert item["price"] == 420.0

    again = _add(client, auth(alice), "OL1W", 1)
    assert again.json()["item"]["id"] == item["id"]

    items = client.get("/api/cart", headers=auth(alice)).json()["items"]
    assert [i["id"] for i in items] == [item["id"]]

    resp = client.delete(f"/api/cart/{item['id']}", headers=auth(alice))
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert client.get("/api/cart", headers=auth(alice)).json()["items"] == []


def test_cart_add_validation(client, auth, alice):
    resp = _add(client, auth(alice), "OL1W", "free")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Price must be a number"

    resp = client.post("/api/cart/add", headers=auth(alice), json={
        "bookId": "OL1W", "title": "Dune", "price": 420, "author": ["Frank Herbert"],
    })
    assert resp.status_code == 400
    assert resp.json()["detail"] == "author and imageUrl must be strings"
    assert client.get("/api/cart", headers=auth(alice)).json()["items"] == []


def test_cannot_remove_other_users_item(client, auth, alice, bob):
    item_id = _add(client, auth(alice), "OL1W", 420).json()["item"]["id"]

    resp = client.delete(f"/api/cart/{item_id}", headers=auth(bob))

    assert resp.status_code == 404
    assert len(client.get("/api/cart", headers=auth(alice)).json()["items"]) == 1


# ==========================================
# UPI checkout
# ==========================================

def test_upi_checkout_success(client, auth, alice, approving_gateway):
    _add(client, auth(alice), "A", 200)
    _add(client, auth(alice), "B", 150)

    init = client.post("/api/payments/upi/initiate", headers=auth(alice), json={"upiId": "alice@okbank"})
    assert init.status_code == 200
    body = init.json()
    assert body["amount"] == 350.0
    assert body["upiString"] == body["paymentString"]

    verify = client.post("/api/payments/upi/verify", headers=auth(alice), json={"transactionId": body["transactionId"]})
    assert verify.status_code == 200
    assert verify.json()["success"] is True

    assert client.get("/api/cart", headers=auth(alice)).json()["items"] == []

    status = client.get(f"/api/payments/status/{body['transactionId']}", headers=auth(alice)).json()
    assert status["paymentStatus"] == "completed"
    assert status["orderStatus"] == "completed"

    history = client.get("/api/purchases/history", headers=auth(alice)).json()["history"]
    assert history[0]["itemCount"] == 2
    assert history[0]["totalSpent"] == 350.0

    stats = client.get("/api/purchases/stats", headers=auth(alice)).json()["stats"]
    assert stats["totalPurchases"] == 2

    again = client.post("/api/payments/upi/verify", headers=auth(alice), json={"transactionId": body["transactionId"]})
    assert again.status_code == 404
    assert again.json() == {"detail": "Order not found or already processed"}


def test_upi_checkout_declined(client, auth, alice, declining_gateway):
    _add(client, auth(alice), "A", 200)
    txn = client.post("/api/payments/upi/initiate", headers=auth(alice)).json()["transactionId"]

    verify = client.post("/api/payments/upi/verify", headers=auth(alice), json={"transactionId": txn})

    assert verify.status_code == 200
    assert verify.json()["success"] is False
    assert len(client.get("/api/cart", headers=auth(alice)).json()["items"]) == 1
    orders = client.get(f"/api/orders/user/{alice.id}", headers=auth(alice)).json()
    assert orders[0]["status"] == "cancelled"
    assert orders[0]["paymentStatus"] == "failed"


def test_initiate_with_empty_cart(client, auth, alice, approving_gateway):
    resp = client.post("/api/payments/upi/initiate", headers=auth(alice))
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Cart is empty"}


def test_verify_requires_transaction_id(client, auth, alice):
    resp = client.post("/api/payments/upi/verify", headers=auth(alice), json={})
    assert resp.status_code == 400


def test_gateway_callback(client, auth, alice, approving_gateway):
    _add(client, auth(alice), "A", 200)
    txn = client.post("/api/payments/upi/initiate", headers=auth(alice)).json()["transactionId"]
    payload = {"transactionId": txn, "status": "SUCCESS", "gatewayTransactionId": "GW1"}

    bad = client.post("/api/payments/callback", json={**payload, "signature": "nope"})
    assert bad.status_code == 400
    assert client.post("/api/payments/callback", json={**payload, "signature": 12345}).status_code == 400
    assert client.post("/api/payments/callback", json={**payload, "signature": "\u00e9" * 64}).status_code == 400

    signature = sign_message("test-callback-secret", f"{txn}|SUCCESS|GW1")
    good = client.post("/api/payments/callback", json={**payload, "signature": signature})
    assert good.status_code == 200
    assert good.json()["processed"] is True
    assert client.get("/api/cart", headers=auth(alice)).json()["items"] == []


def test_refund(client, auth, alice, approving_gateway):
    _add(client, auth(alice), "A", 200)
    body = client.post("/api/payments/upi/initiate", headers=auth(alice)).json()
    client.post("/api/payments/upi/verify", headers=auth(alice), json={"transactionId": body["transactionId"]})

    too_much = client.post("/api/payments/refund", headers=auth(alice), json={"orderId": body["orderId"], "amount": 500})
    assert too_much.status_code == 400

    resp = client.post("/api/payments/refund", headers=auth(alice), json={"orderId": body["orderId"], "reason": "changed mind"})
    assert resp.status_code == 200
    assert resp.json()["amount"] == 200.0

    assert client.post("/api/payments/refund", headers=auth(alice), json={"orderId": body["orderId"]}).status_code == 404


# ==========================================
# Orders
# ==========================================

def test_cod_order_and_admin_management(client, auth, alice, admin):
    _add(client, auth(alice), "A", 200)
    _add(client, auth(alice), "B", 150)

    resp = client.post("/api/orders", headers=auth(alice), json={"address": {"city": "Pune"}})
    assert resp.status_code == 201
    order = resp.json()["order"]
    assert order["totalAmount"] == 350.0
    assert order["paymentMethod"] == "cod"
    assert order["address"] == {"city": "Pune"}

    listing = client.get("/api/orders/admin", headers=auth(admin)).json()
    assert listing[0]["id"] == order["id"]
    assert listing[0]["user"]["username"] == "alice"

    bad = client.put(f"/api/orders/{order['id']}/status", headers=auth(admin), json={"status": "lost"})
    assert bad.status_code == 400

    resp = client.put(f"/api/orders/{order['id']}/status", headers=auth(admin), json={"status": "cancelled"})
    assert resp.status_code == 200
    assert resp.json()["order"]["paymentStatus"] == "failed"

    missing = client.put("/api/orders/9999/status", headers=auth(admin), json={"status": "completed"})
    assert missing.status_code == 404

    forbidden = client.put(f"/api/orders/{order['id']}/status", headers=auth(alice), json={"status": "completed"})
    assert forbidden.status_code == 403


def test_cod_order_cannot_be_paid_through_upi_verify(client, auth, alice, approving_gateway):
    _add(client, auth(alice), "A", 200)
    order = client.post("/api/orders", headers=auth(alice), json={}).json()["order"]

    resp = client.post("/api/payments/upi/verify", headers=auth(alice), json={"transactionId": order["transactionId"]})
    assert resp.status_code == 404

    mine = client.get(f"/api/orders/user/{alice.id}", headers=auth(alice)).json()
    assert mine[0]["paymentStatus"] == "pending"
    assert client.get("/api/purchases/history", headers=auth(alice)).json()["history"] == []


def test_user_orders_visibility(client, auth, alice, bob, admin):
    _add(client, auth(alice), "A", 200)
    client.post("/api/orders", headers=auth(alice))

    assert len(client.get(f"/api/orders/user/{alice.id}", headers=auth(alice)).json()) == 1
    assert client.get(f"/api/orders/user/{alice.id}", headers=auth(bob)).status_code == 403
    assert len(client.get(f"/api/orders/user/{alice.id}", headers=auth(admin)).json()) == 1


# ==========================================
# Reports
# ==========================================

def test_reports(client, auth, alice, admin):
    _add(client, auth(alice), "A", 200, title="Dune")
    order = client.post("/api/orders", headers=auth(alice)).json()["order"]
    client.put(f"/api/orders/{order['id']}/status", headers=auth(admin), json={"status": "completed"})

    top = client.get("/api/reports/top-selling").json()["books"]
    assert top == [{"bookId": "A", "title": "Dune", "author": "Someone", "totalSold": 1, "revenue": 200.0}]

    summary = client.get("/api/reports/summary", headers=auth(admin)).json()
    assert summary["totalRevenue"] == 200.0
    assert summary["ordersByStatus"] == {"completed": 1}
