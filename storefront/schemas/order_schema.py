from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, computed_field

STATUS_TIMELINE = ["pending", "confirmed", "packed", "shipped", "delivered"]


class OrderLineOut(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)
    product_id: str
    product_name: str = ""
    price: Decimal
    quantity: int
    image: Optional[str] = None


class OrderTrackingOut(BaseModel):
    """Order status snapshot from /orders/track/{order_number}."""

    model_config = ConfigDict(extra="ignore")
    order_number: str
    order_status: str
    payment_status: Optional[str] = None
    tracking_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[OrderLineOut] = []
    subtotal: Optional[Decimal] = None
    total: Decimal
    customer_name: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_pincode: Optional[str] = None

    @computed_field
    @property
    def timeline_index(self) -> int:
        # -1 for statuses off the happy path (e.g. cancelled)
        try:
            return STATUS_TIMELINE.index(self.order_status)
        except ValueError:
            return -1

    @computed_field
    @property
    def timeline(self) -> List[dict]:
        return [
            {
                "status": s,
                "completed": i <= self.timeline_index,
                "current": i == self.timeline_index,
            }
            for i, s in enumerate(STATUS_TIMELINE)
        ]
