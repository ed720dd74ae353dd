from typing import List, Optional
from uuid import uuid4

from storefront.adapters.payment_widget import (
    PaymentOutcome,
    PaymentOutcomeKind,
    PaymentRequest,
    PaymentSession,
    PaymentWidget,
    PaymentWidgetError,
)


class MockPaymentWidget(PaymentWidget):
    """
    Scriptable widget for tests and local runs without a gateway.

    Records every opened request; succeed / fail / cancel push an outcome
    for a session (the most recently opened one by default).
    """

    def __init__(self, key: str = "rzp_test_mock", currency: str = "INR", unavailable: bool = False):
        super().__init__(key=key, currency=currency, store_name="Mock Store")
        self.unavailable = unavailable
        self.opened: List[PaymentRequest] = []

    def open(self, request: PaymentRequest) -> PaymentSession:
        if self.unavailable:
            raise PaymentWidgetError("Simulated widget load failure")
        self.opened.append(request)
        return super().open(request)

    def _target(self, session_id: Optional[str]) -> str:
        if session_id:
            return session_id
        if not self.opened:
            raise LookupError("no payment session was opened")
        return self.opened[-1].session_id

    def succeed(self, session_id: Optional[str] = None, order_session_id: Optional[str] = None) -> bool:
        sid = self._target(session_id)
        return self.deliver(
            PaymentOutcome(
                session_id=sid,
                kind=PaymentOutcomeKind.SUCCESS,
                order_session_id=order_session_id or sid,
                payment_id=f"pay_mock_{uuid4().hex[:14]}",
                signature=f"sig_{uuid4().hex}",
            )
        )

    def fail(self, session_id: Optional[str] = None, error: str = "Simulated forced decline") -> bool:
        return self.deliver(
            PaymentOutcome(session_id=self._target(session_id), kind=PaymentOutcomeKind.FAILURE, error=error)
        )

    def cancel(self, session_id: Optional[str] = None) -> bool:
        return self.deliver(
            PaymentOutcome(session_id=self._target(session_id), kind=PaymentOutcomeKind.CANCELLED)
        )
