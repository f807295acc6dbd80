"""
CouponService: validation d'un code contre le total du panier, coupon actif par propriétaire, consommation.
- validate: code vide -> ValidationError locale; refus amont -> CouponError(reason); succès -> coupon actif.
- commit: consomme une utilisation, appelé par OrderPlacer après l'enregistrement de la commande.
"""
import logging
from typing import Any, Dict, Optional

from storefront.coupons import repository
from storefront.coupons.models import CouponApplication
from storefront.errors import CouponError, UpstreamError, ValidationError
from storefront.state.store import PersistedCheckoutState

logger = logging.getLogger(__name__)

_KNOWN_REASONS = {
    CouponError.NOT_FOUND,
    CouponError.EXPIRED,
    CouponError.MINIMUM_NOT_MET,
    CouponError.ALREADY_USED,
}


def classify_rejection(message: Optional[str], reason: Optional[str] = None, upstream_status: Optional[int] = None) -> str:
    """Déduit le motif de refus: champ `reason` s'il est fourni, sinon code HTTP puis message."""
    if reason:
        reason = reason.strip().lower().replace("-", "_")
        if reason in _KNOWN_REASONS:
            return reason
    if upstream_status == 404:
        return CouponError.NOT_FOUND
    text = (message or "").lower()
    if "expire" in text:
        return CouponError.EXPIRED
    if "minimum" in text:
        return CouponError.MINIMUM_NOT_MET
    if "already" in text or "used" in text or "limit" in text or "déjà" in text:
        return CouponError.ALREADY_USED
    if "not found" in text or "invalid" in text or "introuvable" in text:
        return CouponError.NOT_FOUND
    return CouponError.REJECTED


def _application(code: str, cart_total: float, data: Dict[str, Any]) -> CouponApplication:
    discount = float(data.get("discountAmount") or data.get("discount") or 0)
    discount = min(max(discount, 0.0), cart_total)
    final = data.get("finalPrice")
    if final is None:
        final = data.get("finalAmount")
    final_subtotal = float(final) if final is not None else cart_total - discount
    return CouponApplication(code=code, discount_amount=round(discount, 2), final_subtotal=round(final_subtotal, 2))


class CouponService:
    def __init__(self, state: PersistedCheckoutState):
        self.state = state

    async def validate(self, owner: str, code: str, cart_total: float) -> CouponApplication:
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError({"code": "Veuillez saisir un code promo"})

        try:
            payload = await repository.validate_coupon(code, cart_total)
        except UpstreamError as e:
            if e.upstream_status is not None and 400 <= e.upstream_status < 500:
                body = e.body if isinstance(e.body, dict) else {}
                raise CouponError(classify_rejection(e.detail, body.get("reason"), e.upstream_status), e.detail) from e
            raise

        if not payload.get("success", True) or payload.get("valid") is False:
            message = payload.get("message")
            raise CouponError(classify_rejection(message, payload.get("reason")), message)

        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        application = _application(code, cart_total, data)
        await self.state.save_coupon(owner, application)
        logger.info("coupon.applied owner=%s code=%s discount=%s", owner, code, application.discount_amount)
        return application

    async def active(self, owner: str) -> Optional[CouponApplication]:
        return await self.state.get_coupon(owner)

    async def remove(self, owner: str) -> None:
        await self.state.clear_coupon(owner)

    async def commit(self, code: str) -> None:
        await repository.apply_coupon(code)
        logger.info("coupon.committed code=%s", code)
