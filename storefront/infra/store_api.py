"""
Client HTTP partagé vers l'API amont de la boutique (panier, coupons, commandes, paiement, réglages).
- Un seul httpx.AsyncClient par processus, créé au démarrage (lifespan) et fermé à l'arrêt.
- request_json: appel + décodage JSON, erreurs réseau/HTTP converties en UpstreamError.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from storefront.config import STORE_API_URL, STORE_API_TIMEOUT
from storefront.errors import UpstreamError

logger = logging.getLogger(__name__)

_client: Optional[httpx.AsyncClient] = None

def create_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Construit un client configuré (base_url + timeout). `transport` sert aux tests (MockTransport)."""
    return httpx.AsyncClient(
        base_url=STORE_API_URL + "/",
        timeout=STORE_API_TIMEOUT,
        headers={"Accept": "application/json"},
        transport=transport,
    )

def get_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = create_client()
    return _client

def set_client(client: Optional[httpx.AsyncClient]) -> None:
    """Remplace le client courant (lifespan, tests)."""
    global _client
    _client = client

async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

async def request_json(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    *,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Appelle l'API amont et retourne le corps JSON.
    - Chemins relatifs (sans "/" initial) résolus contre STORE_API_URL.
    - httpx.HTTPStatusError / httpx.RequestError -> UpstreamError (status amont conservé).
    """
    try:
        # DELETE avec corps: httpx n'accepte json= que via request()
        response = await client.request(method, path.lstrip("/"), json=json, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        body = _safe_json(e.response)
        message = (body or {}).get("message") if isinstance(body, dict) else None
        logger.warning("store_api %s %s -> %s %s", method, path, e.response.status_code, message or "")
        raise UpstreamError(message or f"Erreur API ({e.response.status_code})", upstream_status=e.response.status_code, body=body) from e
    except httpx.RequestError as e:
        logger.exception("store_api %s %s unreachable", method, path)
        raise UpstreamError("Service indisponible, veuillez réessayer") from e
    if not response.content:
        return {}
    return _safe_json(response)

def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}
