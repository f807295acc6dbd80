from typing import Any, Optional

from storefront.infra.store_api import get_client, request_json


async def fetch_cod_upfront_amount() -> Optional[float]:
    payload: Any = await request_json(get_client(), "GET", "settings/cod-upfront-amount")
    if isinstance(payload, dict):
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        raw = data.get("amount")
    else:
        raw = payload
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
