"""
PaymentOrchestrator: Idle -> Validating -> {DirectOrder | AwaitingGateway} -> SettlementPending.

- Validation du formulaire avant tout appel réseau (erreurs par champ).
- COD avec acompte nul: commande directe, sans passerelle ni référence.
- Sinon: session passerelle pour amount_due_now, snapshot figé + tentative Pending
  enregistrés sous la référence retournée, puis redirection.
- Annulation: retour à Idle, aucune commande, snapshot conservé pour restauration.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from storefront.cart.service import CartStore
from storefront.checkout.models import CheckoutOutcome, CheckoutState, ShippingForm
from storefront.config import BASE_URL, PAYMENT_RETURN_PATH
from storefront.coupons.service import CouponService
from storefront.errors import GatewayInitiationError, UpstreamError, ValidationError
from storefront.orders.service import OrderPlacer
from storefront.payments.gateway import GatewayCustomer, GatewayItem, GatewayRequest, PaymentGateway
from storefront.pricing.models import PaymentMethod, PriceBreakdown
from storefront.pricing.service import (
    compute_breakdown,
    effective_payment_method,
    ensure_gateway_minimum,
)
from storefront.settings.service import SettingsService
from storefront.state.models import AttemptStatus, PendingCheckout, SettlementAttempt
from storefront.state.store import PersistedCheckoutState

logger = logging.getLogger(__name__)


def parse_shipping_form(data: Dict[str, Any]) -> ShippingForm:
    """Valide le formulaire localement; les erreurs pydantic deviennent {champ: message}."""
    try:
        return ShippingForm.model_validate(data or {})
    except PydanticValidationError as e:
        fields: Dict[str, str] = {}
        for err in e.errors():
            name = str(err["loc"][0]) if err.get("loc") else "form"
            if err.get("type") == "missing":
                fields[name] = "Champ obligatoire"
            else:
                ctx_error = (err.get("ctx") or {}).get("error")
                fields[name] = str(ctx_error) if ctx_error else err.get("msg", "Valeur invalide")
        raise ValidationError(fields) from e


class PaymentOrchestrator:
    def __init__(
        self,
        state: PersistedCheckoutState,
        gateway: PaymentGateway,
        *,
        settings: Optional[SettingsService] = None,
        coupons: Optional[CouponService] = None,
        placer: Optional[OrderPlacer] = None,
        return_url: Optional[str] = None,
    ):
        self.state = state
        self.gateway = gateway
        self.settings = settings or SettingsService(state)
        self.coupons = coupons or CouponService(state)
        self.placer = placer or OrderPlacer(state, self.coupons)
        self.return_url = return_url or f"{BASE_URL}{PAYMENT_RETURN_PATH}"

    async def breakdown(self, cart: CartStore, requested: PaymentMethod) -> PriceBreakdown:
        """Aperçu de la ventilation pour la page de checkout (aucune écriture)."""
        current = await cart.load()
        coupon = await self.coupons.active(cart.owner)
        method = effective_payment_method(current.lines, requested)
        deposit = await self.settings.get_cod_deposit_amount() if method == PaymentMethod.COD else 0.0
        return compute_breakdown(current.lines, coupon, method, deposit)

    async def start(self, cart: CartStore, shipping_data: Dict[str, Any], requested: PaymentMethod) -> CheckoutOutcome:
        # Validating: aucune requête réseau avant un formulaire valide
        shipping = parse_shipping_form(shipping_data)

        current = await cart.load()
        if current.is_empty:
            raise ValidationError({"cart": "Votre panier est vide"})
        owner = cart.owner
        coupon = await self.coupons.active(owner)
        method = effective_payment_method(current.lines, requested)
        deposit = await self.settings.get_cod_deposit_amount() if method == PaymentMethod.COD else 0.0
        breakdown = compute_breakdown(current.lines, coupon, method, deposit)

        if method == PaymentMethod.COD and breakdown.amount_due_now <= 0:
            placed = await self.placer.place(breakdown, current.lines, shipping, coupon, None, owner=owner)
            logger.info("checkout.direct_order owner=%s order_id=%s", owner, placed.order_id)
            return CheckoutOutcome(
                state=CheckoutState.DIRECT_ORDER,
                payment_method=method,
                breakdown=breakdown,
                order=placed.model_dump(),
            )

        ensure_gateway_minimum(breakdown)
        request = GatewayRequest(
            amount=breakdown.amount_due_now,
            customer=GatewayCustomer(name=shipping.full_name, email=shipping.email, phone=shipping.phone),
            items=[
                GatewayItem(product_id=l.product_id, title=l.title or l.product_id, quantity=l.quantity, unit_price=l.unit_price)
                for l in current.lines
            ],
            metadata={"owner": owner, "payment_method": method.value},
        )
        try:
            session = await self.gateway.create_session(request, self.return_url)
        except UpstreamError as e:
            logger.exception("checkout.gateway_initiation failed owner=%s", owner)
            raise GatewayInitiationError("Impossible d'ouvrir la session de paiement. Veuillez réessayer.") from e

        reference = session.reference
        await self.state.save_pending(reference, PendingCheckout(
            owner=owner,
            identity=cart.identity,
            lines=current.lines,
            shipping=shipping,
            coupon=coupon,
            breakdown=breakdown,
            payment_method=method,
        ))
        await self.state.save_attempt(SettlementAttempt(gateway_reference_id=reference, payment_method=method, owner=owner))
        logger.info("checkout.awaiting_gateway owner=%s reference=%s amount=%s", owner, reference, breakdown.amount_due_now)
        return CheckoutOutcome(
            state=CheckoutState.AWAITING_GATEWAY,
            payment_method=method,
            breakdown=breakdown,
            gateway_reference_id=reference,
            redirect_url=session.redirect_url,
            redirect_token=session.redirect_token,
        )

    async def cancel(self, reference: str) -> Optional[PendingCheckout]:
        """
        Annulation utilisateur: tentative Cancelled, aucun marqueur, snapshot conservé.
        Sans effet si une commande existe déjà pour la référence.
        """
        if await self.state.get_order_marker(reference):
            return None
        attempt = await self.state.load_attempt(reference)
        if attempt is not None and attempt.status != AttemptStatus.SUCCESS:
            attempt.status = AttemptStatus.CANCELLED
            await self.state.save_attempt(attempt)
        logger.info("checkout.cancelled reference=%s", reference)
        return await self.state.load_pending(reference)

    async def pending(self, owner: str) -> Optional[PendingCheckout]:
        return await self.state.latest_pending(owner)
