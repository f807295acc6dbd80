"""
Enregistrements persistés par PersistedCheckoutState (JSON dans Redis).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.cart.models import CartLine
from storefront.checkout.models import ShippingForm
from storefront.coupons.models import CouponApplication
from storefront.pricing.models import PaymentMethod, PriceBreakdown


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    UNKNOWN = "unknown"
    CANCELLED = "cancelled"


class PendingCheckout(BaseModel):
    """Snapshot figé (panier + formulaire + coupon + ventilation) au moment du passage à la passerelle."""
    owner: str
    identity: Optional[str] = None
    lines: List[CartLine]
    shipping: ShippingForm
    coupon: Optional[CouponApplication] = None
    breakdown: PriceBreakdown
    payment_method: PaymentMethod
    gateway_reference_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class SettlementAttempt(BaseModel):
    gateway_reference_id: str
    payment_method: PaymentMethod
    owner: str
    status: AttemptStatus = AttemptStatus.PENDING
    order_placed: bool = False
    checks: int = 0
    updated_at: datetime = Field(default_factory=utcnow)


class OrderMarker(BaseModel):
    """Preuve durable qu'une commande existe déjà pour une référence passerelle."""
    gateway_reference_id: str
    order_id: str
    placed_at: datetime = Field(default_factory=utcnow)
