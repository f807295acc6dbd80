"""
Adaptateur Stripe (Checkout Sessions): centralise les appels et la configuration Stripe.
Le SDK est synchrone: les appels passent par run_in_threadpool.
"""
import logging
from typing import Any, Dict

import stripe
from starlette.concurrency import run_in_threadpool

from storefront.config import STRIPE_CURRENCY, STRIPE_SECRET_KEY
from storefront.errors import UpstreamError
from storefront.payments.gateway import GatewayRequest, GatewaySession, GatewayStatus, PaymentGateway

logger = logging.getLogger(__name__)


def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    Sans STRIPE_SECRET_KEY, les appels échouent côté SDK (No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe


def _with_query(url: str, query: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{query}"


def session_status(session: Dict[str, Any]) -> GatewayStatus:
    """payment_status == 'paid' fait foi; une session expirée est un échec, ouverte reste en attente."""
    if (session or {}).get("payment_status") == "paid":
        return GatewayStatus.SUCCESS
    status = (session or {}).get("status")
    if status == "expired":
        return GatewayStatus.FAILED
    if status in ("open", "complete"):
        return GatewayStatus.PENDING
    return GatewayStatus.UNKNOWN


class StripeGateway(PaymentGateway):
    def __init__(self, currency: str = STRIPE_CURRENCY):
        self.currency = currency

    async def create_session(self, request: GatewayRequest, return_url: str) -> GatewaySession:
        require_stripe()
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {"name": request.metadata.get("label") or "Commande"},
                            "unit_amount": int(round(request.amount * 100)),  # centimes
                        },
                        "quantity": 1,
                    }
                ],
                customer_email=request.customer.email,
                success_url=_with_query(return_url, "reference={CHECKOUT_SESSION_ID}&status=success"),
                cancel_url=_with_query(return_url, "status=cancelled"),
                metadata={k: str(v) for k, v in request.metadata.items()},
                payment_method_types=["card"],
            )
        except stripe.StripeError as e:
            logger.exception("stripe.create_session failed")
            raise UpstreamError(f"Stripe: {getattr(e, 'user_message', None) or 'session non créée'}") from e
        # stripe retourne un objet; on le traite comme dict-compatible
        session = dict(session)
        return GatewaySession(reference=session["id"], redirect_url=session.get("url"))

    async def _retrieve(self, reference: str) -> Dict[str, Any]:
        require_stripe()
        try:
            return dict(await run_in_threadpool(stripe.checkout.Session.retrieve, reference))
        except stripe.StripeError as e:
            logger.exception("stripe.retrieve failed reference=%s", reference)
            raise UpstreamError("Stripe: session introuvable") from e

    async def fetch_status(self, reference: str) -> GatewayStatus:
        return session_status(await self._retrieve(reference))

    async def confirm(self, reference: str) -> GatewayStatus:
        # Pas d'endpoint de confirmation distinct: la session relue fait foi
        return session_status(await self._retrieve(reference))
