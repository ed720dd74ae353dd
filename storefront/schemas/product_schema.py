# storefront/schemas/product_schema.py
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ProductOut(BaseModel):
    """Catalogue entry as returned by the shop backend."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)
    id: str
    name: str
    price: Decimal = Field(..., ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0, le=100)
    stock: int = 0
    images: List[str] = []
    description: Optional[str] = None

    @computed_field
    @property
    def discounted_price(self) -> Decimal:
        return self.price * (1 - self.discount / Decimal(100))

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""


class ProductIn(BaseModel):
    """Admin create / update payload."""

    name: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., ge=0)
    discount: float = Field(0, ge=0, le=100)
    stock: int = Field(0, ge=0)
    images: List[str] = []

    @classmethod
    def from_form(cls, form: dict) -> "ProductIn":
        """
        Build from raw admin form fields, where `images` is a textarea with
        one URL per line and the numbers arrive as strings.
        """
        raw_images: Union[str, List[str]] = form.get("images") or ""
        if isinstance(raw_images, str):
            images = [u.strip() for u in raw_images.split("\n") if u.strip()]
        else:
            images = [u.strip() for u in raw_images if u and u.strip()]
        return cls(
            name=form.get("name", ""),
            description=form.get("description") or "",
            price=float(form.get("price")),
            discount=float(form.get("discount") or 0),
            stock=int(form.get("stock") or 0),
            images=images,
        )
