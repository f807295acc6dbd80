import logging
from typing import Optional

from fastapi import APIRouter, Depends

from storefront.cart.service import CartStore
from storefront.checkout.orchestrator import PaymentOrchestrator
from storefront.errors import ValidationError
from storefront.payments.gateway import GatewayStatus
from storefront.settlement.service import SettlementResolver
from storefront.utils.dependencies import get_cart_store, get_orchestrator, get_resolver
from storefront.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])


# module storefront.settlement.views
@router.get("/return")
async def payment_return(
    reference: Optional[str] = None,
    status: Optional[str] = None,
    store: CartStore = Depends(get_cart_store),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    resolver: SettlementResolver = Depends(get_resolver),
):
    """
    Retour de la passerelle (rechargement à froid): la référence suffit.
    - status est un indice, jamais un verdict.
    - Annulation sans référence: le dernier checkout du propriétaire est restauré.
    """
    if not reference:
        if status and GatewayStatus.parse(status) == GatewayStatus.FAILED:
            snapshot = await orchestrator.pending(store.owner)
            if snapshot and snapshot.gateway_reference_id:
                await orchestrator.cancel(snapshot.gateway_reference_id)
            return {"state": "idle", "pending": snapshot.model_dump(mode="json") if snapshot else None}
        raise ValidationError({"reference": "Référence de paiement manquante"}, detail="Paiement introuvable")

    placed = await resolver.resolve(reference, status)
    return {"status": "success", "order": placed.model_dump()}


@router.post("/{reference}/retry", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def retry_payment(reference: str, resolver: SettlementResolver = Depends(get_resolver)):
    """Relance manuelle bornée (SETTLEMENT_MAX_RETRIES)."""
    placed = await resolver.retry(reference)
    return {"status": "success", "order": placed.model_dump()}
