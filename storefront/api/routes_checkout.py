from fastapi import APIRouter, Depends, HTTPException

from storefront.adapters.payment_widget import PaymentOutcome, PaymentOutcomeKind, PaymentWidget
from storefront.api.deps import get_checkout, get_widget
from storefront.schemas.checkout_schema import PaymentResultIn
from storefront.services.checkout_service import CheckoutBusy, CheckoutOrchestrator

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@router.get("", summary="Current checkout state")
def checkout_status(checkout: CheckoutOrchestrator = Depends(get_checkout)):
    return checkout.status()


@router.post("", summary="Submit checkout (creates the order and opens payment)")
def submit_checkout(payload: dict, checkout: CheckoutOrchestrator = Depends(get_checkout)):
    """
    payload: customer_name, customer_email, customer_phone, shipping_address,
    shipping_city, shipping_state, shipping_pincode.
    When the response state is awaiting_payment, `payment` holds the widget
    options for the browser.
    """
    try:
        return checkout.submit(payload)
    except CheckoutBusy as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/cancel", summary="Cancel the payment of the current attempt")
def cancel_checkout(checkout: CheckoutOrchestrator = Depends(get_checkout)):
    return checkout.cancel()


@router.post("/payment-result", summary="Payment widget callback")
def payment_result(
    payload: PaymentResultIn,
    widget: PaymentWidget = Depends(get_widget),
    checkout: CheckoutOrchestrator = Depends(get_checkout),
):
    applied = widget.deliver(
        PaymentOutcome(
            session_id=payload.session_id,
            kind=PaymentOutcomeKind(payload.outcome),
            order_session_id=payload.razorpay_order_id,
            payment_id=payload.razorpay_payment_id,
            signature=payload.razorpay_signature,
            error=payload.error,
        )
    )
    return {"applied": applied, **checkout.status()}
