import os

# Ressources de test: fakeredis dans le lifespan, pas de FastAPILimiter
os.environ.setdefault("USE_FAKE_REDIS_FOR_TESTS", "1")
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Generator
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from fastapi.testclient import TestClient

from storefront.app_setup.factory import create_app
from storefront.infra import store_api as store_api_module
from storefront.payments import set_gateway, reset_gateway
from storefront.state.store import PersistedCheckoutState
from storefront.utils.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME
from tests.fakes import FakeGateway, StoreApiStub


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


@pytest.fixture()
def redis_client():
    # Serveur dédié: aucune donnée partagée entre tests
    return FakeRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture()
def state(redis_client) -> PersistedCheckoutState:
    return PersistedCheckoutState(redis_client)


@pytest.fixture()
def store_api() -> Generator[StoreApiStub, None, None]:
    """API amont simulée (httpx.MockTransport) installée comme client partagé."""
    stub = StoreApiStub()
    store_api_module.set_client(stub.client())
    try:
        yield stub
    finally:
        store_api_module.set_client(None)


@pytest.fixture()
def gateway() -> Generator[FakeGateway, None, None]:
    fake = FakeGateway()
    set_gateway(fake)
    try:
        yield fake
    finally:
        reset_gateway()


@pytest.fixture()
def app(store_api, gateway):
    return create_app()


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    """Client se comportant comme le front: renvoie le cookie csrf_token dans X-CSRF-Token."""
    with TestClient(app) as c:
        def send_csrf_header(request):
            token = c.cookies.get(CSRF_COOKIE_NAME)
            if token:
                request.headers[CSRF_HEADER_NAME] = token

        c.event_hooks = {"request": [send_csrf_header], "response": []}
        yield c
