"""
Fabrique de passerelle de paiement.

get_gateway() / set_gateway() / reset_gateway() permettent de changer
d'implémentation (PAYMENT_GATEWAY=rest|stripe, passerelle factice en tests).
"""
from typing import Optional

from storefront.config import PAYMENT_GATEWAY
from storefront.payments.gateway import PaymentGateway

_current_gateway: Optional[PaymentGateway] = None


def build_gateway(name: str = PAYMENT_GATEWAY) -> PaymentGateway:
    if name == "stripe":
        from storefront.payments.stripe_client import StripeGateway
        return StripeGateway()
    from storefront.payments.rest_gateway import RestGateway
    return RestGateway()


def get_gateway() -> PaymentGateway:
    """Passerelle courante; par défaut celle de PAYMENT_GATEWAY."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
