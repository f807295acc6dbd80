from pydantic import BaseModel


class CouponApplication(BaseModel):
    code: str
    discount_amount: float
    final_subtotal: float
