import enum
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from storefront.schemas.cart_schema import CartLineItem


class ShippingForm(BaseModel):
    """Customer details and shipping address entered at checkout."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    customer_name: str = Field(..., min_length=1)
    customer_email: EmailStr
    customer_phone: str = Field(..., pattern=r"^[0-9]{10}$")
    shipping_address: str = Field(..., min_length=1)
    shipping_city: str = Field(..., min_length=1)
    shipping_state: str = Field(..., min_length=1)
    shipping_pincode: str = Field(..., pattern=r"^[0-9]{6}$")


class CheckoutSnapshot(BaseModel):
    """Cart contents and shipping form frozen at submit time."""

    model_config = ConfigDict(frozen=True)

    items: Tuple[CartLineItem, ...]
    shipping: ShippingForm
    subtotal: Decimal

    def order_payload(self) -> dict:
        # raw items go to the backend; it recomputes the settlement total
        return {
            **self.shipping.model_dump(),
            "items": [
                {
                    "product_id": it.product_id,
                    "product_name": it.product_name,
                    "price": float(it.price),
                    "quantity": it.quantity,
                    "image": it.image,
                }
                for it in self.items
            ],
            "subtotal": float(self.subtotal),
            "total": float(self.subtotal),
        }


class OrderHandle(BaseModel):
    """Identifiers returned by order creation."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    order_number: str = Field(..., validation_alias=AliasChoices("order_number", "orderNumber"))
    total: Decimal
    payment_session_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "razorpay_order_id", "payment_session_id", "paymentSessionId"
        ),
    )

    @field_validator("payment_session_id", mode="before")
    @classmethod
    def _blank_is_missing(cls, v):
        return v or None


class CheckoutState(str, enum.Enum):
    IDLE = "idle"
    CREATING = "creating"
    AWAITING_PAYMENT = "awaiting_payment"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureReason(str, enum.Enum):
    VALIDATION = "validation"
    EMPTY_CART = "empty_cart"
    NETWORK = "network"
    GATEWAY_NOT_CONFIGURED = "gateway_not_configured"
    PAYMENT_FAILED = "payment_failed"
    VERIFICATION_FAILED = "verification_failed"


class CheckoutError(BaseModel):
    reason: FailureReason
    message: str


class PaymentResultIn(BaseModel):
    """Outcome posted back by the payment widget running in the browser."""

    session_id: str
    outcome: str = Field(..., pattern=r"^(success|failure|cancelled)$")
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    error: Optional[str] = None
