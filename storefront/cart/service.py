"""
CartStore: panier de la session courante.

- Mode Guest (pas d'identité): lignes stockées dans PersistedCheckoutState après chaque mutation.
- Mode Bound (identité connue): chaque mutation est un aller-retour vers l'API panier;
  le panier renvoyé par le serveur remplace l'état local.
- Toute mutation invalide le coupon actif du propriétaire.
"""
import logging
from typing import Any, Dict, List, Optional

from storefront.cart import repository
from storefront.cart.models import Cart, CartLine, CartMode
from storefront.errors import ValidationError
from storefront.pricing.service import resolve_unit_price
from storefront.state.store import PersistedCheckoutState, owner_key

logger = logging.getLogger(__name__)


def line_from_product(product: Dict[str, Any], quantity: int, visit_date: Optional[str] = None) -> CartLine:
    pid = str(product.get("_id") or product.get("id") or "")
    if not pid:
        raise ValidationError({"product_id": "Produit inconnu"})
    return CartLine(
        product_id=pid,
        quantity=quantity,
        unit_price=resolve_unit_price(product, visit_date),
        cod_available=bool(product.get("codAvailable", product.get("cod_available", True))),
        title=product.get("title") or product.get("name"),
        visit_date=visit_date,
    )


class CartStore:
    def __init__(self, state: PersistedCheckoutState, guest_id: str, identity: Optional[str] = None):
        self.state = state
        self.guest_id = guest_id
        self.identity = identity

    @property
    def mode(self) -> CartMode:
        return CartMode.BOUND if self.identity else CartMode.GUEST

    @property
    def owner(self) -> str:
        return owner_key(self.identity, self.guest_id)

    def _cart(self, lines: List[CartLine]) -> Cart:
        return Cart(mode=self.mode, identity=self.identity, lines=lines)

    async def _guest_lines(self) -> List[CartLine]:
        return await self.state.load_guest_cart(self.guest_id) or []

    async def _changed(self) -> None:
        if await self.state.clear_coupon(self.owner):
            logger.info("cart.coupon invalidated owner=%s", self.owner)

    async def load(self) -> Cart:
        if self.identity:
            return self._cart(await repository.fetch_cart(self.identity))
        return self._cart(await self._guest_lines())

    async def add(self, product: Dict[str, Any], quantity: int = 1, visit_date: Optional[str] = None) -> Cart:
        if quantity < 1:
            raise ValidationError({"quantity": "La quantité doit être au moins 1"})
        line = line_from_product(product, quantity, visit_date)

        if self.identity:
            lines = await repository.add_item(self.identity, line)
        else:
            lines = await self._guest_lines()
            existing = next((l for l in lines if l.product_id == line.product_id), None)
            if existing is not None:
                existing.quantity += quantity
            else:
                lines.append(line)
            await self.state.save_guest_cart(self.guest_id, lines)
        await self._changed()
        return self._cart(lines)

    async def set_quantity(self, product_id: str, quantity: int) -> Cart:
        """Quantité < 1: aucun effet (la suppression passe par remove)."""
        if quantity < 1:
            return await self.load()

        if self.identity:
            lines = await repository.update_item(self.identity, product_id, quantity)
        else:
            lines = await self._guest_lines()
            line = next((l for l in lines if l.product_id == product_id), None)
            if line is None:
                return self._cart(lines)
            line.quantity = quantity
            await self.state.save_guest_cart(self.guest_id, lines)
        await self._changed()
        return self._cart(lines)

    async def remove(self, product_id: str) -> Cart:
        if self.identity:
            lines = await repository.remove_item(self.identity, product_id)
        else:
            lines = [l for l in await self._guest_lines() if l.product_id != product_id]
            await self.state.save_guest_cart(self.guest_id, lines)
        await self._changed()
        return self._cart(lines)

    async def clear(self) -> Cart:
        if self.identity:
            await repository.clear_cart(self.identity)
        else:
            await self.state.delete_guest_cart(self.guest_id)
        await self._changed()
        return self._cart([])

    async def merge_guest_into_bound(self, identity: str) -> Cart:
        """
        Pousse chaque ligne invitée vers le panier du compte puis supprime la copie invitée.
        - Pas de panier invité: aucun effet (idempotent).
        - Chaque ligne poussée est retirée de la copie invitée immédiatement:
          une fusion interrompue peut être relancée sans doublon.
        """
        guest_owner = owner_key(None, self.guest_id)
        self.identity = identity
        pending = await self.state.load_guest_cart(self.guest_id)
        if pending is None:
            return await self.load()

        lines: Optional[List[CartLine]] = None
        remaining = list(pending)
        for line in pending:
            lines = await repository.add_item(identity, line)
            remaining.remove(line)
            if remaining:
                await self.state.save_guest_cart(self.guest_id, remaining)
            else:
                await self.state.delete_guest_cart(self.guest_id)

        await self.state.delete_guest_cart(self.guest_id)
        await self.state.clear_coupon(guest_owner)
        logger.info("cart.merge guest=%s identity=%s lines=%s", self.guest_id, identity, len(pending))
        if lines is None:
            return await self.load()
        await self._changed()
        return self._cart(lines)
