from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class CartLineItem(BaseModel):
    """
    One product row in the cart. `price` is the unit price captured at add
    time with the discount already applied; it is never re-fetched.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: str = Field(..., alias="productId", min_length=1)
    product_name: str = Field("", alias="productName")
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @field_serializer("price")
    def _price_as_string(self, v: Decimal) -> str:
        return str(v)

    def to_record(self) -> dict:
        """Persisted layout: {productId, productName, price, quantity, image}."""
        return self.model_dump(by_alias=True)


class AddItemIn(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateItemIn(BaseModel):
    quantity: int


class CartOut(BaseModel):
    items: List[dict]
    count: int
    total: str
    total_display: str
    held: bool = False
    notice: Optional[str] = None
