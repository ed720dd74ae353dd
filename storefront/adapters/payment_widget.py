import enum
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from storefront.utils.log import get_logger
from storefront.utils.money import quantize

log = get_logger("payment")


class PaymentWidgetError(Exception):
    """The widget could not be opened (script not loaded, key missing)."""
    pass


class PaymentOutcomeKind(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PaymentOutcome:
    """
    What the widget reported for one payment session.

    On success the gateway hands back three identifiers which the backend
    uses to verify the capture: the order session id, the payment id and
    a signature over both.
    """

    session_id: str
    kind: PaymentOutcomeKind
    order_session_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class PaymentRequest:
    session_id: str
    order_number: str
    amount: Decimal
    currency: str = "INR"
    key: str = ""
    store_name: str = ""
    prefill: Dict[str, str] = field(default_factory=dict)

    def widget_options(self) -> Dict:
        """Options for the browser-side checkout widget; amount in minor units."""
        return {
            "key": self.key,
            "amount": int(quantize(self.amount) * 100),
            "currency": self.currency,
            "name": self.store_name,
            "description": f"Order {self.order_number}",
            "order_id": self.session_id,
            "prefill": dict(self.prefill),
        }


class PaymentSession:
    """One opened widget. `outcome` resolves exactly once."""

    def __init__(self, request: PaymentRequest):
        self.request = request
        self.outcome: Future = Future()

    @property
    def session_id(self) -> str:
        return self.request.session_id

    def resolve(self, outcome: PaymentOutcome) -> bool:
        if self.outcome.done():
            return False
        try:
            self.outcome.set_result(outcome)
        except Exception:
            # lost a race with another resolve / close
            return False
        return True

    def close(self):
        self.outcome.cancel()


class PaymentWidget:
    """
    Handoff to the browser-side payment widget.

    `open` registers a session and returns immediately; the browser posts
    the outcome back later and `deliver` routes it to the matching session.
    Outcomes for unknown or closed sessions are dropped.
    """

    def __init__(self, key: str = "", currency: str = "INR", store_name: str = ""):
        self.key = key
        self.currency = currency
        self.store_name = store_name
        self._sessions: Dict[str, PaymentSession] = {}
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.key)

    def build_request(self, session_id: str, order_number: str, amount: Decimal, prefill=None) -> PaymentRequest:
        return PaymentRequest(
            session_id=session_id,
            order_number=order_number,
            amount=amount,
            currency=self.currency,
            key=self.key,
            store_name=self.store_name,
            prefill=prefill or {},
        )

    def open(self, request: PaymentRequest) -> PaymentSession:
        session = PaymentSession(request)
        with self._lock:
            self._sessions[request.session_id] = session
        log.info(f"opened session {request.session_id} for order {request.order_number} amount={request.amount}")
        return session

    def deliver(self, outcome: PaymentOutcome) -> bool:
        with self._lock:
            session = self._sessions.pop(outcome.session_id, None)
        if session is None:
            log.debug(f"dropping outcome for unknown session {outcome.session_id}")
            return False
        return session.resolve(outcome)

    def close(self, session_id: str):
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    def health_check(self) -> bool:
        return self.configured
