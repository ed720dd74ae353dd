from typing import Optional

from pydantic import BaseModel, Field

ORDER_STATUSES = ["pending", "confirmed", "packed", "shipped", "delivered", "cancelled"]
PAYMENT_STATUSES = ["paid", "pending", "failed"]


class LoginIn(BaseModel):
    username: str
    password: str


class OrderStatusIn(BaseModel):
    order_status: str
    tracking_id: Optional[str] = ""


class ChangePasswordIn(BaseModel):
    old_password: str
    new_password: str
    confirm_password: str


class PaymentLedgerOut(BaseModel):
    filter: str = "all"
    orders: list = Field(default_factory=list)
    counts: dict = Field(default_factory=dict)
    total_revenue: str
    pending_amount: str
