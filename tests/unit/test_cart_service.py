import httpx
import pytest

from storefront.cart.models import CartLine, CartMode
from storefront.cart.service import CartStore
from storefront.coupons.models import CouponApplication
from storefront.errors import UpstreamError

PRODUCT = {"_id": "p1", "title": "Entrée adulte", "price": 500, "codAvailable": True}


class BoundCartBackend:
    """Panier serveur minimal: cumule les quantités par produit comme l'API réelle."""

    def __init__(self, fail_on=None):
        self.items = {}
        self.fail_on = set(fail_on or [])

    def payload(self):
        return {"items": [
            {"productId": pid, "quantity": q, "price": 500, "codAvailable": True}
            for pid, q in self.items.items()
        ]}

    def add(self, request, body):
        if body["productId"] in self.fail_on:
            self.fail_on.discard(body["productId"])
            return httpx.Response(503, json={"message": "indisponible"})
        self.items[body["productId"]] = self.items.get(body["productId"], 0) + body["quantity"]
        return self.payload()

    def get(self, request, body):
        return self.payload()


@pytest.mark.asyncio
async def test_guest_add_accumulates_and_persists(state):
    store = CartStore(state, "g1")
    await store.add(PRODUCT, 2)
    cart = await store.add(PRODUCT, 1)

    assert cart.mode == CartMode.GUEST
    assert [(l.product_id, l.quantity, l.unit_price) for l in cart.lines] == [("p1", 3, 500.0)]
    assert [l.quantity for l in await state.load_guest_cart("g1")] == [3]


@pytest.mark.asyncio
@pytest.mark.parametrize("qty", [0, -1, -50])
async def test_set_quantity_below_one_is_a_no_op(state, qty):
    store = CartStore(state, "g1")
    await store.add(PRODUCT, 2)
    cart = await store.set_quantity("p1", qty)
    assert cart.line("p1").quantity == 2


@pytest.mark.asyncio
async def test_bound_set_quantity_below_one_makes_no_update_call(state, store_api):
    store_api.on("GET", "cart", {"items": [{"productId": "p1", "quantity": 2, "price": 500}]})
    store = CartStore(state, "g1", identity="asha@example.com")
    cart = await store.set_quantity("p1", 0)
    assert cart.line("p1").quantity == 2
    assert store_api.count("PUT", "cart/update") == 0


@pytest.mark.asyncio
async def test_bound_mutation_uses_server_cart(state, store_api):
    store_api.on("PUT", "cart/update", {"items": [{"product": {"_id": "p1", "price": 450, "codAvailable": False}, "quantity": 4}]})
    store = CartStore(state, "g1", identity="asha@example.com")
    cart = await store.set_quantity("p1", 4)
    assert cart.mode == CartMode.BOUND
    line = cart.line("p1")
    assert (line.quantity, line.unit_price, line.cod_available) == (4, 450.0, False)
    assert store_api.bodies("PUT", "cart/update") == [{"identity": "asha@example.com", "productId": "p1", "quantity": 4}]


@pytest.mark.asyncio
async def test_mutation_invalidates_active_coupon(state):
    store = CartStore(state, "g1")
    await store.add(PRODUCT, 1)
    await state.save_coupon(store.owner, CouponApplication(code="C", discount_amount=50, final_subtotal=450))

    await store.set_quantity("p1", 3)
    assert await state.get_coupon(store.owner) is None


@pytest.mark.asyncio
async def test_remove_and_clear(state):
    store = CartStore(state, "g1")
    await store.add(PRODUCT, 1)
    await store.add({**PRODUCT, "_id": "p2"}, 1)
    cart = await store.remove("p1")
    assert [l.product_id for l in cart.lines] == ["p2"]
    cart = await store.clear()
    assert cart.is_empty
    assert await state.load_guest_cart("g1") is None


@pytest.mark.asyncio
async def test_merge_is_idempotent(state, store_api):
    backend = BoundCartBackend()
    store_api.on("POST", "cart/add", backend.add).on("GET", "cart", backend.get)
    await state.save_guest_cart("g1", [
        CartLine(product_id="p1", quantity=2, unit_price=500),
        CartLine(product_id="p2", quantity=1, unit_price=300),
    ])

    first = await CartStore(state, "g1").merge_guest_into_bound("asha@example.com")
    second = await CartStore(state, "g1").merge_guest_into_bound("asha@example.com")

    assert {l.product_id: l.quantity for l in first.lines} == {"p1": 2, "p2": 1}
    assert {l.product_id: l.quantity for l in second.lines} == {"p1": 2, "p2": 1}
    assert store_api.count("POST", "cart/add") == 2
    assert await state.load_guest_cart("g1") is None


@pytest.mark.asyncio
async def test_interrupted_merge_resumes_without_double_adding(state, store_api):
    backend = BoundCartBackend(fail_on=["p2"])
    store_api.on("POST", "cart/add", backend.add).on("GET", "cart", backend.get)
    await state.save_guest_cart("g1", [
        CartLine(product_id="p1", quantity=2, unit_price=500),
        CartLine(product_id="p2", quantity=1, unit_price=300),
    ])

    with pytest.raises(UpstreamError):
        await CartStore(state, "g1").merge_guest_into_bound("asha@example.com")
    assert [l.product_id for l in await state.load_guest_cart("g1")] == ["p2"]

    cart = await CartStore(state, "g1").merge_guest_into_bound("asha@example.com")
    assert {l.product_id: l.quantity for l in cart.lines} == {"p1": 2, "p2": 1}
