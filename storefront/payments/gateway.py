"""
Port passerelle de paiement (interface abstraite).

Deux adaptateurs: RestGateway (endpoints payment/* de l'API boutique) et
StripeGateway (Stripe Checkout Sessions). Le reste du pipeline ne dépend que
de ce contrat.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class GatewayStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "GatewayStatus":
        """Normalise les libellés des passerelles (COMPLETED, paid, PAYMENT_ERROR, ...)."""
        value = (raw or "").strip().lower()
        if value in ("success", "completed", "paid", "payment_success", "succeeded", "concluded"):
            return cls.SUCCESS
        if value in ("failed", "failure", "payment_error", "declined", "expired", "cancelled", "canceled"):
            return cls.FAILED
        if value in ("pending", "payment_pending", "processing", "open", "unpaid"):
            return cls.PENDING
        return cls.UNKNOWN


@dataclass(frozen=True)
class GatewaySession:
    """Session créée: `reference` est la clé durable de toute la suite du règlement."""
    reference: str
    redirect_url: Optional[str] = None
    redirect_token: Optional[str] = None


@dataclass(frozen=True)
class GatewayCustomer:
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class GatewayItem:
    product_id: str
    title: str
    quantity: int
    unit_price: float


@dataclass
class GatewayRequest:
    amount: float
    customer: GatewayCustomer
    items: List[GatewayItem] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):

    @abstractmethod
    async def create_session(self, request: GatewayRequest, return_url: str) -> GatewaySession:
        """Ouvre une session de paiement pour `request.amount`."""
        ...

    @abstractmethod
    async def fetch_status(self, reference: str) -> GatewayStatus:
        """Statut faisant foi pour la référence (interrogation, jamais un indice)."""
        ...

    @abstractmethod
    async def confirm(self, reference: str) -> GatewayStatus:
        """Confirme un succès annoncé par la redirection avant de placer la commande."""
        ...
