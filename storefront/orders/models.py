"""
Modèles des commandes.
- OrderDraft: corps envoyé à l'API commandes, prix pris dans le snapshot (jamais recalculés).
- PlacedOrder: résultat de OrderPlacer.place (commande créée ou doublon supprimé).
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.cart.models import CartLine
from storefront.checkout.models import ShippingForm
from storefront.pricing.models import PaymentMethod, PriceBreakdown


class PaymentStatus(str, Enum):
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    PAID = "paid"


def payment_status_for(breakdown: PriceBreakdown, gateway_reference_id: Optional[str]) -> PaymentStatus:
    if breakdown.payment_method == PaymentMethod.ONLINE:
        return PaymentStatus.PAID
    if gateway_reference_id and breakdown.amount_due_now > 0:
        return PaymentStatus.DEPOSIT_PAID
    return PaymentStatus.PENDING


class OrderDraft(BaseModel):
    identity: Optional[str] = None
    shipping: ShippingForm
    lines: List[CartLine]
    breakdown: PriceBreakdown
    payment_status: PaymentStatus
    coupon_code: Optional[str] = None
    gateway_reference_id: Optional[str] = None

    @property
    def upfront_amount(self) -> float:
        return self.breakdown.amount_due_now if self.gateway_reference_id else 0.0

    @property
    def remaining_amount(self) -> float:
        return round(self.breakdown.total - self.upfront_amount, 2)

    def to_payload(self) -> Dict[str, Any]:
        s = self.shipping
        b = self.breakdown
        return {
            "identity": self.identity,
            "customer": {
                "firstName": s.first_name,
                "lastName": s.last_name,
                "email": s.email,
                "phone": s.phone,
                "address": s.address,
                "city": s.city,
            },
            "visitDate": s.visit_date,
            "items": [
                {
                    "productId": l.product_id,
                    "title": l.title,
                    "quantity": l.quantity,
                    "price": l.unit_price,
                    "visitDate": l.visit_date,
                }
                for l in self.lines
            ],
            "subtotal": b.subtotal,
            "discount": b.discount,
            "shipping": b.shipping,
            "codSurcharge": b.cod_surcharge,
            "total": b.total,
            "paymentMethod": b.payment_method.value,
            "paymentStatus": self.payment_status.value,
            "upfrontAmount": self.upfront_amount,
            "remainingAmount": self.remaining_amount,
            "couponCode": self.coupon_code,
            "gatewayReferenceId": self.gateway_reference_id,
        }


class PlacedOrder(BaseModel):
    order_id: str
    gateway_reference_id: Optional[str] = None
    duplicate: bool = False
    order: Dict[str, Any] = Field(default_factory=dict)
