"""
Accès REST au panier rattaché à un compte (mode Bound) et au catalogue.
Chaque mutation renvoie le panier serveur, qui fait foi.
"""
import logging
from typing import Any, Dict, List

from storefront.cart.models import CartLine
from storefront.infra.store_api import get_client, request_json

logger = logging.getLogger(__name__)


def _product_id(item: Dict[str, Any]) -> str:
    product = item.get("product")
    if isinstance(product, dict):
        return str(product.get("_id") or product.get("id") or item.get("productId") or "")
    return str(item.get("productId") or product or "")


def parse_cart_lines(payload: Any) -> List[CartLine]:
    """
    Convertit la réponse de l'API panier en lignes.
    Accepte {"items": [...]} ou une liste brute; le prix et l'option COD
    sont lus sur la ligne, sinon sur le produit imbriqué.
    """
    items = payload.get("items") if isinstance(payload, dict) else payload
    lines: List[CartLine] = []
    for item in items or []:
        product = item.get("product") if isinstance(item.get("product"), dict) else {}
        pid = _product_id(item)
        qty = int(item.get("quantity") or 0)
        if not pid or qty < 1:
            continue
        price = item.get("price", product.get("price", 0))
        cod = item.get("codAvailable", product.get("codAvailable", True))
        lines.append(CartLine(
            product_id=pid,
            quantity=qty,
            unit_price=float(price or 0),
            cod_available=bool(cod),
            title=item.get("title") or product.get("title") or product.get("name"),
            visit_date=item.get("visitDate"),
        ))
    return lines


async def fetch_cart(identity: str) -> List[CartLine]:
    payload = await request_json(get_client(), "GET", "cart", params={"identity": identity})
    return parse_cart_lines(payload)


async def add_item(identity: str, line: CartLine) -> List[CartLine]:
    body = {
        "identity": identity,
        "productId": line.product_id,
        "quantity": line.quantity,
        "price": line.unit_price,
        "visitDate": line.visit_date,
    }
    payload = await request_json(get_client(), "POST", "cart/add", json=body)
    return parse_cart_lines(payload)


async def update_item(identity: str, product_id: str, quantity: int) -> List[CartLine]:
    body = {"identity": identity, "productId": product_id, "quantity": quantity}
    payload = await request_json(get_client(), "PUT", "cart/update", json=body)
    return parse_cart_lines(payload)


async def remove_item(identity: str, product_id: str) -> List[CartLine]:
    payload = await request_json(get_client(), "DELETE", f"cart/remove/{product_id}", json={"identity": identity})
    return parse_cart_lines(payload)


async def clear_cart(identity: str) -> None:
    await request_json(get_client(), "DELETE", "cart/clear", json={"identity": identity})


async def fetch_product(product_id: str) -> Dict[str, Any]:
    """Fiche produit (prix, tarifs datés, option COD) utilisée pour construire une ligne."""
    payload = await request_json(get_client(), "GET", f"products/{product_id}")
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload or {}
