PRODUCT = {"_id": "p1", "title": "Entrée adulte", "price": 500, "weekendprice": 650, "codAvailable": True}


def _bound_add(request, body):
    return {"items": [{"productId": body["productId"], "quantity": body["quantity"], "price": body["price"]}]}


def test_guest_cart_flow(client, store_api):
    store_api.on("GET", "products/p1", PRODUCT)

    res = client.post("/api/v1/cart/items", json={"product_id": "p1", "quantity": 2, "visit_date": "2026-07-18"})
    assert res.status_code == 200
    data = res.json()
    assert data["mode"] == "guest"
    assert data["lines"][0]["unit_price"] == 650
    assert data["subtotal"] == 1300

    res = client.put("/api/v1/cart/items/p1", json={"quantity": 0})
    assert res.json()["lines"][0]["quantity"] == 2

    res = client.put("/api/v1/cart/items/p1", json={"quantity": 3})
    assert res.json()["total_items"] == 3

    res = client.delete("/api/v1/cart/items/p1")
    assert res.json()["lines"] == []


def test_guest_cart_survives_between_requests(client, store_api):
    store_api.on("GET", "products/p1", PRODUCT)
    client.post("/api/v1/cart/items", json={"product_id": "p1", "quantity": 1})

    res = client.get("/api/v1/cart")
    assert [l["product_id"] for l in res.json()["lines"]] == ["p1"]

    assert client.delete("/api/v1/cart").json()["lines"] == []
    assert client.get("/api/v1/cart").json()["lines"] == []


def test_unknown_product_is_upstream_error(client, store_api):
    res = client.post("/api/v1/cart/items", json={"product_id": "nope", "quantity": 1})
    assert res.status_code == 502
    assert res.json()["kind"] == "upstream"


def test_sign_in_merges_guest_cart_once(client, store_api):
    store_api.on("GET", "products/p1", PRODUCT)
    store_api.on("POST", "cart/add", _bound_add)
    store_api.on("GET", "cart", {"items": [{"productId": "p1", "quantity": 2, "price": 500}]})
    client.post("/api/v1/cart/items", json={"product_id": "p1", "quantity": 2})

    res = client.post("/api/v1/session/sign-in", json={"identity": "asha@example.com"})
    assert res.status_code == 200
    cart = res.json()["cart"]
    assert cart["mode"] == "bound"
    assert cart["lines"][0]["quantity"] == 2
    assert store_api.bodies("POST", "cart/add")[0]["identity"] == "asha@example.com"

    res = client.post("/api/v1/session/sign-in", json={"identity": "asha@example.com"})
    assert res.json()["cart"]["lines"][0]["quantity"] == 2
    assert store_api.count("POST", "cart/add") == 1

    assert client.get("/api/v1/cart").json()["mode"] == "bound"
    client.post("/api/v1/session/sign-out")
    assert client.get("/api/v1/cart").json()["mode"] == "guest"
