import pytest
from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient
from starlette.middleware.sessions import SessionMiddleware

from storefront.utils.rate_limit import optional_rate_limit, rate_limit_health_info
from storefront.utils.security import ensure_guest_id


def _make_app(times=2, seconds=60):
    app = FastAPI()
    app.add_middleware(SessionMiddleware, secret_key="test-secret")

    @app.get("/guest")
    def guest(request: Request):
        return {"guest_id": ensure_guest_id(request)}

    @app.get("/limitedA", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_a():
        return {"ok": True}

    @app.get("/limitedB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429


def test_rate_limit_is_per_path_and_session(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    app = _make_app(times=1, seconds=60)
    first = TestClient(app)
    second = TestClient(app)
    first.get("/guest")
    second.get("/guest")

    assert first.get("/limitedA").status_code == 200
    assert first.get("/limitedA").status_code == 429
    # Autre chemin, même session: compteur distinct
    assert first.get("/limitedB").status_code == 200
    # Autre session invitée: compteur distinct
    assert second.get("/limitedA").status_code == 200


def test_rate_limit_disabled_flag_skips_limiter(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    app.state.rate_limit_enabled = False
    client = TestClient(app)
    for _ in range(3):
        assert client.get("/limitedA").status_code == 200


def test_rate_limit_health_info(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    data = TestClient(_make_app()).get("/rl_info").json()
    assert data["local_fallback"] is True
    assert set(data) >= {"enabled", "ready", "backend"}
