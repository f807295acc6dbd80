from typing import Any, Dict, List

from storefront.infra.store_api import get_client, request_json


def _unwrap(payload: Any, *keys: str) -> Any:
    if isinstance(payload, dict):
        for key in keys:
            if payload.get(key) is not None:
                return payload[key]
    return payload


def order_id_of(order: Dict[str, Any]) -> str:
    return str(order.get("_id") or order.get("id") or order.get("orderId") or "")


async def create_order(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = _unwrap(await request_json(get_client(), "POST", "orders", json=payload), "order", "data")
    return data if isinstance(data, dict) else {}


async def list_orders(identity: str) -> List[Dict[str, Any]]:
    data = _unwrap(await request_json(get_client(), "GET", "orders", params={"identity": identity}), "orders", "data")
    return data if isinstance(data, list) else []


async def get_order(order_id: str) -> Dict[str, Any]:
    data = _unwrap(await request_json(get_client(), "GET", f"orders/{order_id}"), "order", "data")
    return data if isinstance(data, dict) else {}
