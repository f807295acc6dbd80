"""
Modèles du checkout.
- ShippingForm: coordonnées client, validées localement (aucun appel réseau).
- CheckoutState: états de l'orchestrateur de paiement.
- CheckoutOutcome: réponse de démarrage (commande directe ou passage à la passerelle).
"""
import re
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from storefront.pricing.models import PaymentMethod, PriceBreakdown

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")


class ShippingForm(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    visit_date: Optional[str] = None

    @field_validator("first_name", "last_name", "address", "city")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Champ obligatoire")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Adresse email invalide")
        return v

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        v = re.sub(r"[\s\-().]", "", v or "")
        if not PHONE_PATTERN.match(v):
            raise ValueError("Numéro de téléphone invalide")
        return v

    @field_validator("visit_date")
    @classmethod
    def _visit_date(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            return date.fromisoformat(v[:10]).isoformat()
        except ValueError:
            raise ValueError("Date de visite invalide (AAAA-MM-JJ)")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    DIRECT_ORDER = "direct_order"
    AWAITING_GATEWAY = "awaiting_gateway"
    SETTLEMENT_PENDING = "settlement_pending"


class CheckoutOutcome(BaseModel):
    state: CheckoutState
    payment_method: PaymentMethod
    breakdown: PriceBreakdown
    gateway_reference_id: Optional[str] = None
    redirect_url: Optional[str] = None
    redirect_token: Optional[str] = None
    order: Optional[Dict[str, Any]] = None
