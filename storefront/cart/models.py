"""
Modèles du panier.
- CartLine: une ligne par produit (unicité sur product_id), quantité >= 1, prix unitaire figé côté panier.
- Cart: lignes + mode de propriété (guest: stockage durable local, bound: panier serveur par identité).
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class CartMode(str, Enum):
    GUEST = "guest"
    BOUND = "bound"


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(default=0.0, ge=0)
    cod_available: bool = True
    title: Optional[str] = None
    visit_date: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    mode: CartMode
    identity: Optional[str] = None
    lines: List[CartLine] = Field(default_factory=list)

    def line(self, product_id: str) -> Optional[CartLine]:
        return next((l for l in self.lines if l.product_id == product_id), None)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total_items(self) -> int:
        return sum(l.quantity for l in self.lines)
