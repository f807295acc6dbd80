"""
OrderPlacer: enregistre exactement une commande par paiement réussi.

Protocole de déduplication (par référence passerelle):
1) marqueur présent -> doublon supprimé, la commande existante est renvoyée
2) verrou SET NX: un seul déclencheur soumet; les autres relisent le marqueur
   ou reçoivent OrderPlacementInProgress
3) soumission réussie -> marqueur durable écrit avant la libération du verrou
   (écriture du marqueur en échec: verrou conservé jusqu'à expiration)
4) échec -> pas de marqueur, verrou libéré, snapshot intact, OrderSubmissionError
Après coup: coupon consommé, panier et snapshot effacés (erreurs journalisées, non bloquantes).
"""
import logging
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from storefront.cart.models import CartLine
from storefront.cart.service import CartStore
from storefront.checkout.models import ShippingForm
from storefront.coupons.models import CouponApplication
from storefront.coupons.service import CouponService
from storefront.errors import OrderPlacementInProgress, OrderSubmissionError, StorefrontError, UpstreamError
from storefront.orders import repository
from storefront.orders.models import OrderDraft, PlacedOrder, payment_status_for
from storefront.pricing.models import PriceBreakdown
from storefront.state.models import OrderMarker
from storefront.state.store import PersistedCheckoutState, parse_owner

logger = logging.getLogger(__name__)


class OrderPlacer:
    def __init__(self, state: PersistedCheckoutState, coupons: Optional[CouponService] = None):
        self.state = state
        self.coupons = coupons or CouponService(state)

    async def _existing(self, reference: str) -> Optional[PlacedOrder]:
        marker = await self.state.get_order_marker(reference)
        if marker is None:
            return None
        logger.info("orders.duplicate suppressed reference=%s order_id=%s", reference, marker.order_id)
        return PlacedOrder(order_id=marker.order_id, gateway_reference_id=reference, duplicate=True)

    async def place(
        self,
        breakdown: PriceBreakdown,
        lines: List[CartLine],
        shipping: ShippingForm,
        coupon: Optional[CouponApplication],
        gateway_reference_id: Optional[str] = None,
        *,
        owner: str,
    ) -> PlacedOrder:
        reference = gateway_reference_id
        token: Optional[str] = None

        if reference:
            existing = await self._existing(reference)
            if existing:
                return existing
            token = await self.state.claim_order_slot(reference)
            if token is None:
                existing = await self._existing(reference)
                if existing:
                    return existing
                raise OrderPlacementInProgress(reference)
            # Relecture sous verrou: le détenteur précédent a pu poser le marqueur entre-temps
            existing = await self._existing(reference)
            if existing:
                await self.state.release_order_slot(reference, token)
                return existing

        identity, guest_id = parse_owner(owner)
        draft = OrderDraft(
            identity=identity,
            shipping=shipping,
            lines=lines,
            breakdown=breakdown,
            payment_status=payment_status_for(breakdown, reference),
            coupon_code=coupon.code if coupon else None,
            gateway_reference_id=reference,
        )

        try:
            order = await repository.create_order(draft.to_payload())
        except UpstreamError as e:
            logger.exception("orders.submit failed reference=%s", reference)
            if token:
                await self.state.release_order_slot(reference, token)
            raise OrderSubmissionError(
                "Paiement reçu mais la commande n'a pas pu être enregistrée. Réessayez.", reference=reference
            ) from e

        order_id = repository.order_id_of(order) or (reference or "")
        if reference:
            try:
                await self.state.mark_order_placed(OrderMarker(gateway_reference_id=reference, order_id=order_id))
            except RedisError:
                # Commande créée sans marqueur: le verrou reste posé jusqu'à expiration
                logger.exception("orders.marker write failed reference=%s order_id=%s", reference, order_id)
            else:
                await self.state.release_order_slot(reference, token)

        logger.info("orders.placed order_id=%s reference=%s method=%s", order_id, reference, breakdown.payment_method.value)
        await self._after_placement(owner, identity, guest_id, coupon, reference)
        return PlacedOrder(order_id=order_id, gateway_reference_id=reference, order=order)

    async def _after_placement(
        self,
        owner: str,
        identity: Optional[str],
        guest_id: Optional[str],
        coupon: Optional[CouponApplication],
        reference: Optional[str],
    ) -> None:
        if coupon:
            try:
                await self.coupons.commit(coupon.code)
            except StorefrontError:
                logger.exception("orders.coupon commit failed code=%s owner=%s", coupon.code, owner)
        try:
            await CartStore(self.state, guest_id or "", identity).clear()
        except StorefrontError:
            logger.exception("orders.cart clear failed owner=%s", owner)
        if reference:
            await self.state.clear_pending(reference)

    async def list_orders(self, identity: str) -> List[Dict[str, Any]]:
        return await repository.list_orders(identity)

    async def get_order(self, order_id: str, identity: str) -> Optional[Dict[str, Any]]:
        """Retourne la commande seulement si elle appartient à `identity`."""
        order = await repository.get_order(order_id)
        if not order or order.get("identity") != identity:
            logger.info("orders.read denied order_id=%s identity=%s", order_id, identity)
            return None
        return order
