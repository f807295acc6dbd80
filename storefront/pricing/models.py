from enum import Enum

from pydantic import BaseModel, ConfigDict


class PaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"


class PriceBreakdown(BaseModel):
    """Ventilation dérivée (jamais stockée seule): recalculée à partir du panier, du coupon et du mode."""
    model_config = ConfigDict(frozen=True)

    payment_method: PaymentMethod
    subtotal: float
    discount: float
    shipping: float
    cod_surcharge: float
    total: float
    amount_due_now: float

    @property
    def remaining_amount(self) -> float:
        return round(self.total - self.amount_due_now, 2)
