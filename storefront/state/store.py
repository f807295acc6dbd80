"""
PersistedCheckoutState: unique propriétaire des clés durables du pipeline.

Cycle de vie des clés (Redis):
- guest_cart:{guest_id}     panier invité; réécrit à chaque mutation, supprimé après fusion ou commande.
- coupon:{owner}            coupon actif du panier; supprimé à toute modification du panier.
- pending:{reference}       snapshot de checkout figé avant le passage à la passerelle (TTL).
- pending_ref:{owner}       pointeur vers le dernier snapshot du propriétaire (restauration du formulaire).
- attempt:{reference}       tentative de règlement (statut, relances).
- order_lock:{reference}    verrou de placement, posé par SET NX (check-then-set atomique).
- order_marker:{reference}  marqueur de déduplication, sans expiration; posé une seule fois.
- cod_deposit:last          dernier montant d'acompte connu.
"""
import logging
import secrets
from typing import List, Optional, Tuple

import redis.asyncio as redis
from pydantic import TypeAdapter

from storefront.config import GUEST_CART_TTL, ORDER_LOCK_TTL, PENDING_CHECKOUT_TTL
from storefront.cart.models import CartLine
from storefront.coupons.models import CouponApplication
from storefront.state.models import OrderMarker, PendingCheckout, SettlementAttempt

logger = logging.getLogger(__name__)

_LINES = TypeAdapter(List[CartLine])


def owner_key(identity: Optional[str], guest_id: Optional[str]) -> str:
    """Clé propriétaire: le compte si connecté, sinon l'identifiant invité de la session."""
    if identity:
        return f"account:{identity}"
    return f"guest:{guest_id or 'anonymous'}"


def parse_owner(owner: str) -> Tuple[Optional[str], Optional[str]]:
    """Inverse de owner_key: (identity, guest_id)."""
    kind, _, value = (owner or "").partition(":")
    if kind == "account":
        return value, None
    return None, value or None


class PersistedCheckoutState:
    def __init__(
        self,
        client: redis.Redis,
        *,
        pending_ttl: int = PENDING_CHECKOUT_TTL,
        guest_cart_ttl: int = GUEST_CART_TTL,
        lock_ttl: int = ORDER_LOCK_TTL,
    ):
        self.redis = client
        self.pending_ttl = pending_ttl
        self.guest_cart_ttl = guest_cart_ttl
        self.lock_ttl = lock_ttl

    # --- Panier invité ---

    async def load_guest_cart(self, guest_id: str) -> Optional[List[CartLine]]:
        """Retourne None si aucun panier invité n'existe (distinct d'un panier vide)."""
        raw = await self.redis.get(f"guest_cart:{guest_id}")
        if raw is None:
            return None
        return _LINES.validate_json(raw)

    async def save_guest_cart(self, guest_id: str, lines: List[CartLine]) -> None:
        await self.redis.set(f"guest_cart:{guest_id}", _LINES.dump_json(lines), ex=self.guest_cart_ttl)

    async def delete_guest_cart(self, guest_id: str) -> None:
        await self.redis.delete(f"guest_cart:{guest_id}")

    # --- Coupon actif ---

    async def get_coupon(self, owner: str) -> Optional[CouponApplication]:
        raw = await self.redis.get(f"coupon:{owner}")
        return CouponApplication.model_validate_json(raw) if raw else None

    async def save_coupon(self, owner: str, coupon: CouponApplication) -> None:
        await self.redis.set(f"coupon:{owner}", coupon.model_dump_json())

    async def clear_coupon(self, owner: str) -> bool:
        return bool(await self.redis.delete(f"coupon:{owner}"))

    # --- Snapshot de checkout en attente ---

    async def save_pending(self, reference: str, snapshot: PendingCheckout) -> None:
        snapshot = snapshot.model_copy(update={"gateway_reference_id": reference})
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(f"pending:{reference}", snapshot.model_dump_json(), ex=self.pending_ttl)
            pipe.set(f"pending_ref:{snapshot.owner}", reference, ex=self.pending_ttl)
            await pipe.execute()

    async def load_pending(self, reference: str) -> Optional[PendingCheckout]:
        raw = await self.redis.get(f"pending:{reference}")
        return PendingCheckout.model_validate_json(raw) if raw else None

    async def latest_pending(self, owner: str) -> Optional[PendingCheckout]:
        reference = await self.redis.get(f"pending_ref:{owner}")
        if not reference:
            return None
        return await self.load_pending(reference)

    async def clear_pending(self, reference: str) -> None:
        snapshot = await self.load_pending(reference)
        await self.redis.delete(f"pending:{reference}")
        if snapshot is not None:
            pointer = f"pending_ref:{snapshot.owner}"
            if await self.redis.get(pointer) == reference:
                await self.redis.delete(pointer)

    # --- Tentatives de règlement ---

    async def save_attempt(self, attempt: SettlementAttempt) -> None:
        await self.redis.set(
            f"attempt:{attempt.gateway_reference_id}", attempt.model_dump_json(), ex=self.pending_ttl
        )

    async def load_attempt(self, reference: str) -> Optional[SettlementAttempt]:
        raw = await self.redis.get(f"attempt:{reference}")
        return SettlementAttempt.model_validate_json(raw) if raw else None

    # --- Déduplication des commandes ---

    async def get_order_marker(self, reference: str) -> Optional[OrderMarker]:
        raw = await self.redis.get(f"order_marker:{reference}")
        return OrderMarker.model_validate_json(raw) if raw else None

    async def claim_order_slot(self, reference: str) -> Optional[str]:
        """
        Pose le verrou de placement en une seule opération (SET NX EX).
        Retourne le jeton du verrou, ou None si un autre déclencheur le détient.
        """
        token = secrets.token_hex(8)
        acquired = await self.redis.set(f"order_lock:{reference}", token, nx=True, ex=self.lock_ttl)
        return token if acquired else None

    async def release_order_slot(self, reference: str, token: str) -> None:
        key = f"order_lock:{reference}"
        if await self.redis.get(key) == token:
            await self.redis.delete(key)

    async def mark_order_placed(self, marker: OrderMarker) -> None:
        # Pas d'expiration: le marqueur doit survivre à tout redémarrage
        await self.redis.set(f"order_marker:{marker.gateway_reference_id}", marker.model_dump_json())
        logger.info("state.order_marker set reference=%s order_id=%s", marker.gateway_reference_id, marker.order_id)

    # --- Acompte COD ---

    async def remember_deposit(self, amount: float) -> None:
        await self.redis.set("cod_deposit:last", str(amount))

    async def last_known_deposit(self) -> Optional[float]:
        raw = await self.redis.get("cod_deposit:last")
        try:
            return float(raw) if raw is not None else None
        except ValueError:
            return None

