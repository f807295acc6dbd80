import httpx
import pytest

from storefront.errors import UpstreamError
from storefront.infra.store_api import create_client, request_json


def _client(handler):
    return create_client(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_http_error_keeps_upstream_message_and_status():
    client = _client(lambda req: httpx.Response(409, json={"message": "Stock épuisé"}))
    with pytest.raises(UpstreamError) as exc:
        await request_json(client, "POST", "cart/add", json={"productId": "p1"})
    assert exc.value.upstream_status == 409
    assert exc.value.detail == "Stock épuisé"
    assert "body" not in exc.value.to_dict()


@pytest.mark.asyncio
async def test_network_error_becomes_upstream_error():
    def _boom(req):
        raise httpx.ConnectError("refused", request=req)
    with pytest.raises(UpstreamError) as exc:
        await request_json(_client(_boom), "GET", "cart")
    assert exc.value.upstream_status is None


@pytest.mark.asyncio
async def test_empty_body_is_empty_dict_and_paths_are_relative():
    seen = []

    def _ok(req):
        seen.append(req.url.path)
        return httpx.Response(204)
    assert await request_json(_client(_ok), "DELETE", "/cart/clear", json={"identity": "a"}) == {}
    assert seen[0].endswith("/cart/clear")
