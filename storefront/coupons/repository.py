from typing import Any, Dict

from storefront.infra.store_api import get_client, request_json


async def validate_coupon(code: str, cart_total: float) -> Dict[str, Any]:
    return await request_json(get_client(), "POST", "coupons/validate", json={"code": code, "cartTotal": cart_total})


async def apply_coupon(code: str) -> Dict[str, Any]:
    """Consomme une utilisation du coupon (appelé une fois la commande enregistrée)."""
    return await request_json(get_client(), "POST", "coupons/apply", json={"code": code})
