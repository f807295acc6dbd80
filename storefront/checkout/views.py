import logging
from enum import Enum
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from storefront.cart.service import CartStore
from storefront.checkout.orchestrator import PaymentOrchestrator
from storefront.pricing.models import PaymentMethod, PriceBreakdown
from storefront.pricing.service import cod_allowed
from storefront.settlement.service import SettlementResolver
from storefront.utils.dependencies import get_cart_store, get_orchestrator, get_resolver
from storefront.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


class CheckoutRequest(BaseModel):
    shipping: Dict[str, Any] = Field(default_factory=dict)
    payment_method: PaymentMethod = PaymentMethod.ONLINE


class CallbackEvent(str, Enum):
    USER_CANCEL = "USER_CANCEL"
    CONCLUDED = "CONCLUDED"


class CallbackRequest(BaseModel):
    reference: str
    event: CallbackEvent


def breakdown_payload(breakdown: PriceBreakdown) -> Dict[str, Any]:
    payload = breakdown.model_dump()
    payload["remaining_amount"] = breakdown.remaining_amount
    return payload


# module storefront.checkout.views
@router.get("/breakdown")
async def get_breakdown(
    payment_method: PaymentMethod = PaymentMethod.ONLINE,
    store: CartStore = Depends(get_cart_store),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Ventilation du panier pour le mode demandé (COD forcé en ligne si une ligne ne l'accepte pas)."""
    breakdown = await orchestrator.breakdown(store, payment_method)
    cart = await store.load()
    return {**breakdown_payload(breakdown), "cod_allowed": cod_allowed(cart.lines)}


@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def start_checkout(
    body: CheckoutRequest,
    store: CartStore = Depends(get_cart_store),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """
    Démarre le paiement.
    - 422 si le formulaire est invalide (aucun appel réseau).
    - state=direct_order: commande créée (COD sans acompte).
    - state=awaiting_gateway: rediriger vers redirect_url / redirect_token.
    """
    outcome = await orchestrator.start(store, body.shipping, body.payment_method)
    payload = outcome.model_dump(mode="json")
    payload["breakdown"] = breakdown_payload(outcome.breakdown)
    return payload


@router.get("/pending")
async def get_pending(
    store: CartStore = Depends(get_cart_store),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Dernier checkout non abouti du propriétaire (restauration du formulaire, du panier et du coupon)."""
    snapshot = await orchestrator.pending(store.owner)
    return {"pending": snapshot.model_dump(mode="json") if snapshot else None}


@router.post("/callback")
async def gateway_callback(
    body: CallbackRequest,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    resolver: SettlementResolver = Depends(get_resolver),
):
    """
    Rappel in-page de la passerelle.
    - USER_CANCEL: retour à Idle, snapshot conservé.
    - CONCLUDED: interrogation du statut faisant foi puis règlement.
    """
    if body.event == CallbackEvent.USER_CANCEL:
        snapshot = await orchestrator.cancel(body.reference)
        return {
            "state": "idle",
            "reference": body.reference,
            "pending": snapshot.model_dump(mode="json") if snapshot else None,
        }
    placed = await resolver.resolve(body.reference)
    return {"status": "success", "order": placed.model_dump()}
