"""
Session navigateur (cookie signé SessionMiddleware).
- guest_id: identifiant invité, créé à la première requête, stable jusqu'à l'expiration du cookie.
- identity: compte rattaché après connexion (la vérification des jetons est faite en amont).
"""
import secrets
from typing import Optional

from fastapi import HTTPException, Request

GUEST_SESSION_KEY = "guest_id"
IDENTITY_SESSION_KEY = "identity"


def ensure_guest_id(request: Request) -> str:
    guest_id = request.session.get(GUEST_SESSION_KEY)
    if not guest_id:
        guest_id = secrets.token_urlsafe(16)
        request.session[GUEST_SESSION_KEY] = guest_id
    return guest_id


def get_identity(request: Request) -> Optional[str]:
    return request.session.get(IDENTITY_SESSION_KEY) or None


def bind_identity(request: Request, identity: str) -> None:
    ensure_guest_id(request)
    request.session[IDENTITY_SESSION_KEY] = identity


def unbind_identity(request: Request) -> None:
    request.session.pop(IDENTITY_SESSION_KEY, None)


def require_identity(request: Request) -> str:
    identity = get_identity(request)
    if not identity:
        raise HTTPException(status_code=401, detail="Non authentifié")
    return identity
