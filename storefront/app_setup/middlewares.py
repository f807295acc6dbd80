"""
Middlewares transverses de l'application.
- register_basic_middlewares: session (guest_id / identity), CORS, TrustedHost et confiance en X-Forwarded-*.
- register_security_middleware: vérification CSRF et en-têtes de sécurité sur toutes les réponses.
- register_no_cache_middleware: empêche la mise en cache du panier, du checkout et des paiements.
"""
from fastapi import Request, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from storefront.config import COOKIE_SECURE, CORS_ORIGINS, ALLOWED_HOSTS, SESSION_SECRET_KEY, GUEST_CART_TTL
from storefront.utils.csrf import (
    SESSION_COOKIE_NAME,
    attach_csrf_cookie_if_missing,
    csrf_token_valid,
    requires_csrf,
)

NO_CACHE_PREFIXES = ("/api/v1/cart", "/api/v1/checkout", "/api/v1/payments", "/api/v1/orders")


def register_basic_middlewares(app: FastAPI) -> None:
    """
    - SessionMiddleware: cookie signé portant guest_id et identity (durée = rétention du panier invité).
    - CORSMiddleware: autorise les origines définies (dev/prod); credentials seulement sans joker.
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    - ProxyHeadersMiddleware: fait confiance aux en-têtes du proxy (x-forwarded-*).
    """
    app.add_middleware(
        SessionMiddleware,
        secret_key=SESSION_SECRET_KEY,
        session_cookie=SESSION_COOKIE_NAME,
        max_age=GUEST_CART_TTL,
        same_site="lax",
        https_only=COOKIE_SECURE,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        # Origine joker: jamais de cookies cross-origin
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )
    # Fait confiance aux en-têtes X-Forwarded-* (Render, Nginx, etc.)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


def register_security_middleware(app: FastAPI) -> None:
    """
    - CSRF: X-CSRF-Token doit égaler le cookie csrf_token sur les requêtes mutatives /api/v1/* avec session.
    - En-têtes: X-Frame-Options, X-Content-Type-Options, Referrer-Policy, HSTS (si secure).
    - Dépose le cookie CSRF s'il manque.
    """
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        if requires_csrf(request) and not csrf_token_valid(request):
            return JSONResponse(status_code=403, content={"detail": "CSRF verification failed"})

        response = await call_next(request)
        attach_csrf_cookie_if_missing(response, request)
        if "X-Frame-Options" not in response.headers:
            response.headers["X-Frame-Options"] = "DENY"
        if "X-Content-Type-Options" not in response.headers:
            response.headers["X-Content-Type-Options"] = "nosniff"
        if "Referrer-Policy" not in response.headers:
            response.headers["Referrer-Policy"] = "no-referrer"
        if COOKIE_SECURE and "Strict-Transport-Security" not in response.headers:
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
        return response


def register_no_cache_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def no_cache_for_checkout(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(NO_CACHE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response
