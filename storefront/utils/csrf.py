# module storefront.utils.csrf
"""
Protection CSRF par double soumission pour l'API liée au cookie de session.
Le navigateur lit le cookie csrf_token (non httponly) et le renvoie dans l'en-tête X-CSRF-Token
sur chaque requête mutative /api/v1/*.
"""
import secrets

from fastapi import Request
from fastapi.responses import Response

from storefront.config import COOKIE_SECURE, GUEST_CART_TTL

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
SESSION_COOKIE_NAME = "session"
PROTECTED_PREFIX = "/api/v1/"
STATE_CHANGING_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def requires_csrf(request: Request) -> bool:
    """
    Requête mutative sur l'API, portant déjà un cookie de session.
    Sans session, aucun panier ni identité ne peut être détourné.
    """
    return (
        request.method.upper() in STATE_CHANGING_METHODS
        and request.url.path.startswith(PROTECTED_PREFIX)
        and bool(request.cookies.get(SESSION_COOKIE_NAME))
    )


def csrf_token_valid(request: Request) -> bool:
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME, "")
    header_token = request.headers.get(CSRF_HEADER_NAME, "")
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(header_token, cookie_token)


def attach_csrf_cookie_if_missing(response: Response, request: Request) -> None:
    if request.cookies.get(CSRF_COOKIE_NAME):
        return
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=secrets.token_urlsafe(32),
        httponly=False,  # lu par le front pour l'en-tête X-CSRF-Token
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=GUEST_CART_TTL,
        path="/",
    )
