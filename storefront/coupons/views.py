from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.cart.service import CartStore
from storefront.coupons.service import CouponService
from storefront.pricing.service import subtotal_of
from storefront.utils.dependencies import get_cart_store, get_coupon_service

router = APIRouter(prefix="/api/v1/coupons", tags=["Coupons API"])


class CouponRequest(BaseModel):
    code: str = ""


@router.post("/validate")
async def validate_coupon(
    body: CouponRequest,
    store: CartStore = Depends(get_cart_store),
    coupons: CouponService = Depends(get_coupon_service),
):
    """Valide le code contre le sous-total du panier courant; le coupon accepté devient actif."""
    cart = await store.load()
    application = await coupons.validate(store.owner, body.code, subtotal_of(cart.lines))
    return application.model_dump()


@router.delete("")
async def remove_coupon(
    store: CartStore = Depends(get_cart_store),
    coupons: CouponService = Depends(get_coupon_service),
):
    await coupons.remove(store.owner)
    return {"status": "ok"}
