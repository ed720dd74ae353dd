import threading
import time
from decimal import Decimal
from typing import Callable, Dict, Optional, Union
from uuid import uuid4

from pydantic import ValidationError

from storefront.adapters.backend_api import BackendClient, BackendError
from storefront.adapters.payment_widget import (
    PaymentOutcome,
    PaymentOutcomeKind,
    PaymentSession,
    PaymentWidget,
    PaymentWidgetError,
)
from storefront.schemas.checkout_schema import (
    CheckoutError,
    CheckoutSnapshot,
    CheckoutState,
    FailureReason,
    OrderHandle,
    ShippingForm,
)
from storefront.services.cart_service import CartStore
from storefront.utils.log import get_logger

log = get_logger("checkout")

# a new attempt may start only from these states
STARTABLE = {CheckoutState.IDLE, CheckoutState.FAILED, CheckoutState.COMPLETED}


class CheckoutServiceException(Exception):
    pass


class CheckoutBusy(CheckoutServiceException):
    """A submit arrived while another attempt is still in flight."""
    pass


def _describe_validation(e: ValidationError) -> str:
    fields = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        fields.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid"))
    return "Invalid checkout details - " + "; ".join(fields)


class CheckoutOrchestrator:
    """
    Drives one checkout attempt at a time:

        idle -> creating -> awaiting_payment -> verifying -> completed
                    |              |                |
                    +-> failed     +-> idle (cancel) +-> failed
                                   +-> failed (declined)

    The cart is read once, at submit, and held (mutations ignored) until the
    attempt ends. It is cleared only on completion; every other ending leaves
    it as it was so the customer can retry.
    """

    def __init__(
        self,
        cart: CartStore,
        backend: BackendClient,
        widget: PaymentWidget,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cart = cart
        self.backend = backend
        self.widget = widget
        self.clock = clock

        self.state = CheckoutState.IDLE
        self.last_error: Optional[CheckoutError] = None
        self.notice: Optional[str] = None
        self.confirmation_order_number: Optional[str] = None

        self._attempt_id: Optional[str] = None
        self._snapshot: Optional[CheckoutSnapshot] = None
        self._handle: Optional[OrderHandle] = None
        self._session: Optional[PaymentSession] = None
        self._state_since: Optional[float] = None
        self._lock = threading.RLock()

    # -- queries -------------------------------------------------------------

    def status(self) -> Dict:
        with self._lock:
            payment = None
            if self.state == CheckoutState.AWAITING_PAYMENT and self._session is not None:
                payment = self._session.request.widget_options()
            return {
                "state": self.state.value,
                "error": self.last_error.model_dump(mode="json") if self.last_error else None,
                "notice": self.notice,
                "order_number": self.confirmation_order_number
                or (self._handle.order_number if self._handle else None),
                "payment": payment,
                "cart_held": self.cart.held,
            }

    @property
    def snapshot(self) -> Optional[CheckoutSnapshot]:
        return self._snapshot

    # -- transitions ---------------------------------------------------------

    def _end_attempt(self):
        if self._session is not None:
            self.widget.close(self._session.session_id)
        if self._attempt_id is not None:
            self.cart.release(self._attempt_id)
        self._attempt_id = None
        self._snapshot = None
        self._handle = None
        self._session = None
        self._state_since = None

    def _fail(self, reason: FailureReason, message: str) -> Dict:
        log.info(f"attempt {self._attempt_id} failed ({reason.value}): {message}")
        self.state = CheckoutState.FAILED
        self.last_error = CheckoutError(reason=reason, message=message)
        self.notice = None
        self._end_attempt()
        return self.status()

    def _to_idle(self, notice: str) -> Dict:
        log.info(f"attempt {self._attempt_id} back to idle: {notice}")
        self.state = CheckoutState.IDLE
        self.last_error = None
        self.notice = notice
        self._end_attempt()
        return self.status()

    def submit(self, form: Union[ShippingForm, Dict]) -> Dict:
        """
        Start a checkout attempt for the current cart.

        Raises CheckoutBusy if an attempt is already in flight. Every other
        problem ends the attempt in `failed` with a reason; nothing from the
        backend propagates.
        """
        with self._lock:
            if self.state not in STARTABLE:
                raise CheckoutBusy(f"Checkout already in progress (state={self.state.value})")
            self.last_error = None
            self.notice = None
            self.confirmation_order_number = None
            try:
                shipping = form if isinstance(form, ShippingForm) else ShippingForm.model_validate(form)
            except ValidationError as e:
                return self._fail(FailureReason.VALIDATION, _describe_validation(e))

            items = tuple(self.cart.get_cart())
            if not items:
                return self._fail(FailureReason.EMPTY_CART, "Your cart is empty")
            snapshot = CheckoutSnapshot(
                items=items,
                shipping=shipping,
                subtotal=sum((it.line_total for it in items), Decimal("0")),
            )
            attempt = uuid4().hex
            self._attempt_id = attempt
            self._snapshot = snapshot
            self.state = CheckoutState.CREATING
            self._state_since = self.clock()
            self.cart.hold(attempt)
            log.info(f"attempt {attempt}: creating order for {len(items)} line(s), subtotal={snapshot.subtotal}")

        # network call outside the lock; the attempt id detects a cancel meanwhile
        failure = None
        handle = None
        try:
            handle = OrderHandle.model_validate(self.backend.create_order(snapshot.order_payload()) or {})
        except BackendError as e:
            if e.is_client_error:
                failure = (FailureReason.VALIDATION, f"Order rejected: {e.detail or e}")
            else:
                failure = (FailureReason.NETWORK, "Failed to create order")
        except ValidationError:
            failure = (FailureReason.NETWORK, "Failed to create order: unexpected response")
        except Exception:
            log.exception(f"attempt {attempt}: create order raised")
            failure = (FailureReason.NETWORK, "Failed to create order")

        with self._lock:
            if self._attempt_id != attempt or self.state != CheckoutState.CREATING:
                log.info(f"attempt {attempt} abandoned while creating order")
                return self.status()
            if failure:
                return self._fail(*failure)
            if not handle.payment_session_id:
                return self._fail(
                    FailureReason.GATEWAY_NOT_CONFIGURED,
                    "Payment gateway not configured. Please contact admin.",
                )
            if handle.total != snapshot.subtotal:
                log.warning(
                    f"order {handle.order_number}: backend total {handle.total} differs from cart subtotal {snapshot.subtotal}"
                )
            self._handle = handle
            request = self.widget.build_request(
                session_id=handle.payment_session_id,
                order_number=handle.order_number,
                amount=handle.total,
                prefill={
                    "name": shipping.customer_name,
                    "email": shipping.customer_email,
                    "contact": shipping.customer_phone,
                },
            )
            try:
                session = self.widget.open(request)
            except PaymentWidgetError as e:
                return self._fail(FailureReason.PAYMENT_FAILED, f"Could not open payment: {e}")
            self._session = session
            self._state_since = self.clock()
            self.state = CheckoutState.AWAITING_PAYMENT

        session.outcome.add_done_callback(self._on_session_done)
        return self.status()

    def _on_session_done(self, fut):
        if fut.cancelled():
            return
        try:
            self.handle_payment_outcome(fut.result())
        except Exception:
            # an attempt left in verifying is recovered by expire_stale
            log.exception("applying payment outcome failed")

    def handle_payment_outcome(self, outcome: PaymentOutcome) -> bool:
        """
        Apply a widget outcome. Returns False when it was discarded because
        it does not belong to the attempt currently awaiting payment.
        """
        with self._lock:
            handle = self._handle
            if (
                self.state != CheckoutState.AWAITING_PAYMENT
                or handle is None
                or outcome.session_id != handle.payment_session_id
            ):
                log.debug(f"discarding stale outcome for session {outcome.session_id}")
                return False
            if outcome.kind == PaymentOutcomeKind.CANCELLED:
                self._to_idle("Payment cancelled")
                return True
            if outcome.kind == PaymentOutcomeKind.FAILURE:
                self._fail(FailureReason.PAYMENT_FAILED, outcome.error or "Payment failed")
                return True
            if outcome.order_session_id and outcome.order_session_id != handle.payment_session_id:
                log.debug(f"discarding outcome for foreign order session {outcome.order_session_id}")
                return False
            if not outcome.payment_id or not outcome.signature:
                self._fail(FailureReason.VERIFICATION_FAILED, "Payment verification failed: incomplete payment details")
                return True
            attempt = self._attempt_id
            self.state = CheckoutState.VERIFYING
            self._state_since = self.clock()

        verified = False
        try:
            body = self.backend.verify_payment(handle.payment_session_id, outcome.payment_id, outcome.signature)
            if isinstance(body, dict):
                verified = body.get("success", True) is not False and body.get("verified", True) is not False
            else:
                log.warning(f"verification for order {handle.order_number}: unexpected response {body!r}")
        except BackendError as e:
            log.warning(f"verification for order {handle.order_number} failed: {e}")
        except Exception:
            log.exception(f"verification for order {handle.order_number} raised")

        with self._lock:
            if self._attempt_id != attempt or self.state != CheckoutState.VERIFYING:
                return False
            if not verified:
                self._fail(FailureReason.VERIFICATION_FAILED, "Payment verification failed")
                return True
            self.cart.release(attempt)
            self.cart.clear()
            self._end_attempt()
            self.state = CheckoutState.COMPLETED
            self.confirmation_order_number = handle.order_number
            self.notice = "Payment successful!"
            log.info(f"order {handle.order_number} completed")
            return True

    def cancel(self) -> Dict:
        """
        User-initiated cancel of the attempt. Only attempts that have not
        handed a payment to verification can be cancelled.
        """
        with self._lock:
            if self.state in (CheckoutState.CREATING, CheckoutState.AWAITING_PAYMENT):
                return self._to_idle("Payment cancelled")
            return self.status()

    def expire_stale(self, max_age_seconds: float) -> bool:
        """
        End an attempt stuck in one in-flight state for longer than
        `max_age_seconds`. Creating and awaiting payment go back to idle;
        a verification that never answered ends in failed, since the
        payment may have been taken.
        """
        with self._lock:
            if self.state in STARTABLE or self._state_since is None:
                return False
            if self.clock() - self._state_since < max_age_seconds:
                return False
            if self.state == CheckoutState.VERIFYING:
                self._fail(FailureReason.VERIFICATION_FAILED, "Payment verification timed out")
            else:
                self._to_idle("Payment window expired")
            return True
