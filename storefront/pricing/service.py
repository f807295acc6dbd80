"""
Logique de tarification pure (pas de réseau, pas de stockage).
- compute_breakdown: panier + coupon + mode de paiement + acompte -> PriceBreakdown.
- cod_allowed / effective_payment_method: le COD n'est proposé que si toutes les lignes l'acceptent.
- ensure_gateway_minimum: refuse une session en ligne sous le plancher de la passerelle.
- resolve_unit_price: prix d'un billet daté (prix spécial du jour > tarif week-end > tarif normal).
"""
from datetime import date
from typing import Any, Dict, Iterable, Optional

from storefront.config import GATEWAY_MIN_AMOUNT, SHIPPING_FEE
from storefront.cart.models import CartLine
from storefront.coupons.models import CouponApplication
from storefront.errors import ValidationError
from storefront.pricing.models import PaymentMethod, PriceBreakdown


def _money(value: float) -> float:
    return round(float(value), 2)


def subtotal_of(lines: Iterable[CartLine]) -> float:
    return _money(sum(l.unit_price * l.quantity for l in lines))


def compute_breakdown(
    lines: Iterable[CartLine],
    coupon: Optional[CouponApplication],
    method: PaymentMethod,
    cod_deposit_amount: float,
) -> PriceBreakdown:
    """
    Calcule la ventilation d'un panier.
    - subtotal = Σ prix unitaire × quantité
    - discount = montant du coupon (0 sans coupon); sous-total remisé jamais négatif
    - shipping = SHIPPING_FEE (gratuit aujourd'hui, champ conservé)
    - COD: surcharge = acompte, total = remisé + acompte, dû maintenant = acompte
    - En ligne: surcharge = 0, total = remisé, dû maintenant = total
    """
    lines = list(lines)
    subtotal = subtotal_of(lines)
    discount = _money(coupon.discount_amount) if coupon else 0.0
    final_subtotal = max(subtotal - discount, 0.0)
    shipping = _money(SHIPPING_FEE)

    if method == PaymentMethod.COD:
        cod_surcharge = _money(cod_deposit_amount)
        total = _money(final_subtotal + shipping + cod_surcharge)
        amount_due_now = cod_surcharge
    else:
        cod_surcharge = 0.0
        total = _money(final_subtotal + shipping)
        amount_due_now = total

    return PriceBreakdown(
        payment_method=method,
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        cod_surcharge=cod_surcharge,
        total=total,
        amount_due_now=amount_due_now,
    )


def cod_allowed(lines: Iterable[CartLine]) -> bool:
    lines = list(lines)
    return bool(lines) and all(l.cod_available for l in lines)


def effective_payment_method(lines: Iterable[CartLine], requested: PaymentMethod) -> PaymentMethod:
    """Force le paiement en ligne dès qu'une ligne n'accepte pas le COD."""
    if requested == PaymentMethod.COD and not cod_allowed(lines):
        return PaymentMethod.ONLINE
    return requested


def ensure_gateway_minimum(breakdown: PriceBreakdown, minimum: float = GATEWAY_MIN_AMOUNT) -> None:
    if breakdown.amount_due_now < minimum:
        raise ValidationError(
            {"amount": f"Montant minimum pour un paiement en ligne: {minimum:.2f}"},
            detail="Montant insuffisant pour la passerelle de paiement",
        )


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def resolve_unit_price(product: Dict[str, Any], visit_date: Optional[str] = None, price_field: str = "price") -> float:
    """
    Prix unitaire d'un billet pour une date de visite.
    - specialPrices[date][price_field] s'il existe pour ce jour
    - sinon weekend<price_field> (ex: weekendprice) le samedi/dimanche s'il est renseigné
    - sinon product[price_field]
    """
    base = _to_float(product.get(price_field))
    if not visit_date:
        return base
    try:
        day = date.fromisoformat(str(visit_date)[:10])
    except ValueError:
        return base

    special = ((product.get("specialPrices") or {}).get(day.isoformat()) or {}).get(price_field)
    if special:
        return _to_float(special)
    if day.weekday() >= 5:
        weekend = _to_float(product.get(f"weekend{price_field}"))
        if weekend > 0:
            return weekend
    return base
