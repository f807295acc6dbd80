"""
SettlementResolver: transforme un retour de passerelle en verdict, puis en commande.

- Le statut porté par la redirection n'est qu'un indice: Failed/Pending sont revérifiés
  une fois auprès du statut faisant foi; Success passe par l'appel de confirmation.
- Retour avec référence seule (rechargement à froid): interrogation pure.
- Marqueur déjà présent: commande existante renvoyée sans appel passerelle.
- retry: relance manuelle bornée; une tentative déjà confirmée ne rejoue que le placement.
"""
import logging
from typing import Optional

from storefront.config import SETTLEMENT_MAX_RETRIES
from storefront.errors import (
    GatewayOutcomeFailed,
    GatewayOutcomeUnknown,
    OrderSubmissionError,
    UpstreamError,
    ValidationError,
)
from storefront.orders.models import PlacedOrder
from storefront.orders.service import OrderPlacer
from storefront.payments.gateway import GatewayStatus, PaymentGateway
from storefront.state.models import AttemptStatus, SettlementAttempt, utcnow
from storefront.state.store import PersistedCheckoutState

logger = logging.getLogger(__name__)

_ATTEMPT_STATUS = {
    GatewayStatus.SUCCESS: AttemptStatus.SUCCESS,
    GatewayStatus.FAILED: AttemptStatus.FAILED,
    GatewayStatus.PENDING: AttemptStatus.PENDING,
    GatewayStatus.UNKNOWN: AttemptStatus.UNKNOWN,
}


class SettlementResolver:
    def __init__(
        self,
        state: PersistedCheckoutState,
        gateway: PaymentGateway,
        placer: Optional[OrderPlacer] = None,
        *,
        max_retries: int = SETTLEMENT_MAX_RETRIES,
    ):
        self.state = state
        self.gateway = gateway
        self.placer = placer or OrderPlacer(state)
        self.max_retries = max_retries

    async def _already_placed(self, reference: str) -> Optional[PlacedOrder]:
        marker = await self.state.get_order_marker(reference)
        if marker is None:
            return None
        logger.info("settlement.already_placed reference=%s order_id=%s", reference, marker.order_id)
        return PlacedOrder(order_id=marker.order_id, gateway_reference_id=reference, duplicate=True)

    async def _authoritative_status(self, reference: str, hint: Optional[GatewayStatus]) -> GatewayStatus:
        try:
            if hint == GatewayStatus.SUCCESS:
                return await self.gateway.confirm(reference)
            return await self.gateway.fetch_status(reference)
        except UpstreamError:
            logger.exception("settlement.status lookup failed reference=%s", reference)
            return GatewayStatus.UNKNOWN

    async def _record(self, attempt: SettlementAttempt, status: AttemptStatus) -> None:
        attempt.status = status
        attempt.updated_at = utcnow()
        await self.state.save_attempt(attempt)

    async def _place(self, reference: str, attempt: SettlementAttempt) -> PlacedOrder:
        snapshot = await self.state.load_pending(reference)
        if snapshot is None:
            raise OrderSubmissionError(
                "Paiement confirmé mais détails de commande introuvables. Contactez le support.", reference=reference
            )
        placed = await self.placer.place(
            snapshot.breakdown,
            snapshot.lines,
            snapshot.shipping,
            snapshot.coupon,
            reference,
            owner=snapshot.owner,
        )
        attempt.order_placed = True
        await self.state.save_attempt(attempt)
        return placed

    async def resolve(self, reference: str, hinted_status: Optional[str] = None) -> PlacedOrder:
        existing = await self._already_placed(reference)
        if existing:
            return existing

        attempt = await self.state.load_attempt(reference)
        if attempt is None:
            snapshot = await self.state.load_pending(reference)
            if snapshot is None:
                raise ValidationError({"reference": "Référence de paiement inconnue"}, detail="Paiement introuvable")
            attempt = SettlementAttempt(
                gateway_reference_id=reference, payment_method=snapshot.payment_method, owner=snapshot.owner
            )

        hint = GatewayStatus.parse(hinted_status) if hinted_status else None
        status = await self._authoritative_status(reference, hint)
        await self._record(attempt, _ATTEMPT_STATUS[status])
        logger.info("settlement.verdict reference=%s hint=%s status=%s", reference, hinted_status, status.value)

        if status == GatewayStatus.SUCCESS:
            return await self._place(reference, attempt)
        if status == GatewayStatus.FAILED:
            raise GatewayOutcomeFailed(reference)
        raise GatewayOutcomeUnknown(reference, status.value, max(self.max_retries - attempt.checks, 0))

    async def retry(self, reference: str) -> PlacedOrder:
        existing = await self._already_placed(reference)
        if existing:
            return existing

        attempt = await self.state.load_attempt(reference)
        if attempt is None:
            raise ValidationError({"reference": "Référence de paiement inconnue"}, detail="Paiement introuvable")

        # Paiement déjà confirmé: seul le placement est rejoué (pas de second débit)
        if attempt.status == AttemptStatus.SUCCESS and not attempt.order_placed:
            return await self._place(reference, attempt)

        if attempt.checks >= self.max_retries:
            raise GatewayOutcomeUnknown(
                reference,
                attempt.status.value,
                0,
                detail="Statut toujours indéterminé. Contactez le support avec votre référence de paiement.",
            )
        attempt.checks += 1
        await self.state.save_attempt(attempt)
        return await self.resolve(reference)
