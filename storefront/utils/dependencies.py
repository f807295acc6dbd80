"""
Fournisseurs FastAPI (Depends) construits à partir des ressources du lifespan (app.state).
"""
from fastapi import Depends, Request

from storefront.cart.service import CartStore
from storefront.checkout.orchestrator import PaymentOrchestrator
from storefront.coupons.service import CouponService
from storefront.orders.service import OrderPlacer
from storefront.payments import get_gateway
from storefront.settlement.service import SettlementResolver
from storefront.state.store import PersistedCheckoutState
from storefront.utils.security import ensure_guest_id, get_identity


def get_state(request: Request) -> PersistedCheckoutState:
    return request.app.state.checkout_state


def get_cart_store(request: Request, state: PersistedCheckoutState = Depends(get_state)) -> CartStore:
    return CartStore(state, ensure_guest_id(request), get_identity(request))


def get_coupon_service(state: PersistedCheckoutState = Depends(get_state)) -> CouponService:
    return CouponService(state)


def get_order_placer(state: PersistedCheckoutState = Depends(get_state)) -> OrderPlacer:
    return OrderPlacer(state)


def get_orchestrator(state: PersistedCheckoutState = Depends(get_state)) -> PaymentOrchestrator:
    return PaymentOrchestrator(state, get_gateway())


def get_resolver(state: PersistedCheckoutState = Depends(get_state)) -> SettlementResolver:
    return SettlementResolver(state, get_gateway())
