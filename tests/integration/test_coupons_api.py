PRODUCT = {"_id": "p1", "title": "Entrée adulte", "price": 500}


def test_coupon_applies_to_breakdown_and_is_dropped_on_cart_change(client, store_api):
    store_api.on("GET", "products/p1", PRODUCT)
    store_api.on("POST", "coupons/validate", {"success": True, "data": {"discountAmount": 100}})
    client.post("/api/v1/cart/items", json={"product_id": "p1", "quantity": 2})

    res = client.post("/api/v1/coupons/validate", json={"code": "splash100"})
    assert res.status_code == 200
    assert res.json() == {"code": "SPLASH100", "discount_amount": 100.0, "final_subtotal": 900.0}
    assert store_api.bodies("POST", "coupons/validate") == [{"code": "SPLASH100", "cartTotal": 1000.0}]

    breakdown = client.get("/api/v1/checkout/breakdown", params={"payment_method": "online"}).json()
    assert breakdown["discount"] == 100
    assert breakdown["amount_due_now"] == 900

    client.put("/api/v1/cart/items/p1", json={"quantity": 3})
    breakdown = client.get("/api/v1/checkout/breakdown", params={"payment_method": "online"}).json()
    assert breakdown["discount"] == 0
    assert breakdown["total"] == 1500


def test_rejected_coupon_is_reported_with_kind(client, store_api):
    store_api.on("POST", "coupons/validate", {"message": "Coupon has expired"}, status=400)
    res = client.post("/api/v1/coupons/validate", json={"code": "OLD"})
    assert res.status_code == 400
    body = res.json()
    assert body["kind"] == "coupon"
    assert body["reason"] == "expired"
    assert body["actions"] == ["edit_coupon"]


def test_blank_coupon_is_a_validation_error(client, store_api):
    res = client.post("/api/v1/coupons/validate", json={"code": ""})
    assert res.status_code == 422
    assert res.json()["fields"] == {"code": "Veuillez saisir un code promo"}
    assert store_api.count("POST", "coupons/validate") == 0


def test_remove_coupon(client, store_api):
    assert client.delete("/api/v1/coupons").json() == {"status": "ok"}
