from fastapi.testclient import TestClient

from storefront.utils.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME


def test_orders_require_identity(client, store_api):
    assert client.get("/api/v1/orders").status_code == 401


def test_orders_history_for_signed_in_identity(client, store_api):
    store_api.on("GET", "orders", {"orders": [{"_id": "o-1", "total": 1039}]})
    store_api.on("GET", "orders/o-1", {"order": {"_id": "o-1", "identity": "asha@example.com", "total": 1039}})
    store_api.on("GET", "cart", {"items": []})
    client.post("/api/v1/session/sign-in", json={"identity": "asha@example.com"})

    assert client.get("/api/v1/orders").json() == {"orders": [{"_id": "o-1", "total": 1039}]}
    assert client.get("/api/v1/orders/o-1").json()["order"]["_id"] == "o-1"


def test_order_of_another_identity_is_not_found(client, store_api):
    store_api.on("GET", "orders/o-2", {"order": {"_id": "o-2", "identity": "ravi@example.com", "total": 500}})
    store_api.on("GET", "cart", {"items": []})
    client.post("/api/v1/session/sign-in", json={"identity": "asha@example.com"})

    res = client.get("/api/v1/orders/o-2")
    assert res.status_code == 404
    assert "ravi" not in res.text


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    res = client.get("/health/redis")
    assert res.status_code == 200
    assert res.json()["ok"] is True
    assert res.json()["rate_limit"]["enabled"] is False


def test_checkout_routes_are_not_cached(client, store_api):
    res = client.get("/api/v1/cart")
    assert res.headers["Cache-Control"].startswith("no-store")
    assert res.headers["X-Frame-Options"] == "DENY"


def test_state_changing_call_without_csrf_header_is_refused(app, store_api):
    with TestClient(app) as browser:
        browser.get("/api/v1/cart")
        assert browser.cookies.get("session")
        assert browser.cookies.get(CSRF_COOKIE_NAME)

        res = browser.post("/api/v1/coupons/validate", json={"code": "SPLASH100"})
        assert res.status_code == 403
        assert res.json() == {"detail": "CSRF verification failed"}

        forged = browser.post(
            "/api/v1/session/sign-in", json={"identity": "mallory@example.com"}, headers={CSRF_HEADER_NAME: "forged"}
        )
        assert forged.status_code == 403
        assert store_api.calls == []

        ok = browser.post("/api/v1/session/sign-out", headers={CSRF_HEADER_NAME: browser.cookies.get(CSRF_COOKIE_NAME)})
        assert ok.status_code == 200


def test_csrf_cookie_is_readable_by_the_front(client):
    res = client.get("/api/v1/cart")
    assert "csrf_token=" in res.headers["set-cookie"]
    assert client.cookies.get(CSRF_COOKIE_NAME)
