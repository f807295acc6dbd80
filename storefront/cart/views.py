import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from storefront.cart import repository as cart_repo
from storefront.cart.models import Cart
from storefront.cart.service import CartStore
from storefront.pricing.service import cod_allowed, subtotal_of
from storefront.state.store import PersistedCheckoutState
from storefront.utils.dependencies import get_cart_store, get_state
from storefront.utils.security import bind_identity, ensure_guest_id, unbind_identity

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])
session_router = APIRouter(prefix="/api/v1/session", tags=["Session API"])


class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    visit_date: Optional[str] = None


class QuantityRequest(BaseModel):
    quantity: int


class SignInRequest(BaseModel):
    identity: str = Field(min_length=1)


def cart_payload(cart: Cart) -> Dict[str, Any]:
    return {
        "mode": cart.mode.value,
        "identity": cart.identity,
        "lines": [l.model_dump() for l in cart.lines],
        "total_items": cart.total_items,
        "subtotal": subtotal_of(cart.lines),
        "cod_allowed": cod_allowed(cart.lines),
    }


# module storefront.cart.views
@router.get("")
async def get_cart(store: CartStore = Depends(get_cart_store)):
    return cart_payload(await store.load())


@router.post("/items")
async def add_item(body: AddItemRequest, store: CartStore = Depends(get_cart_store)):
    """
    Ajoute un produit au panier (fiche produit lue sur l'API pour le prix et l'option COD).
    - visit_date: applique la tarification datée (prix spécial, week-end).
    """
    product = await cart_repo.fetch_product(body.product_id)
    product.setdefault("_id", body.product_id)
    return cart_payload(await store.add(product, body.quantity, body.visit_date))


@router.put("/items/{product_id}")
async def set_quantity(product_id: str, body: QuantityRequest, store: CartStore = Depends(get_cart_store)):
    return cart_payload(await store.set_quantity(product_id, body.quantity))


@router.delete("/items/{product_id}")
async def remove_item(product_id: str, store: CartStore = Depends(get_cart_store)):
    return cart_payload(await store.remove(product_id))


@router.delete("")
async def clear_cart(store: CartStore = Depends(get_cart_store)):
    return cart_payload(await store.clear())


@session_router.post("/sign-in")
async def sign_in(request: Request, body: SignInRequest, state: PersistedCheckoutState = Depends(get_state)):
    """Rattache l'identité à la session puis fusionne le panier invité dans le panier du compte."""
    guest_id = ensure_guest_id(request)
    bind_identity(request, body.identity)
    cart = await CartStore(state, guest_id).merge_guest_into_bound(body.identity)
    return {"identity": body.identity, "cart": cart_payload(cart)}


@session_router.post("/sign-out")
async def sign_out(request: Request):
    unbind_identity(request)
    return {"status": "ok"}
