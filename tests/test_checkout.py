from decimal import Decimal

import pytest
import requests

from conftest import SHIPPING
from storefront.adapters.backend_api import BackendClient
from storefront.adapters.mock_payment import MockPaymentWidget
from storefront.adapters.payment_widget import PaymentOutcome, PaymentOutcomeKind
from storefront.schemas.checkout_schema import CheckoutState, FailureReason
from storefront.services.checkout_service import CheckoutBusy, CheckoutOrchestrator


@pytest.fixture
def filled_cart(cart, catalogue):
    cart.add_item(catalogue.get_product("P2"), 3)
    cart.add_item(catalogue.get_product("P1"), 1)
    return cart


def _records(cart):
    return [it.to_record() for it in cart.get_cart()]


def test_happy_path_completes_and_clears_cart(checkout, filled_cart, widget, shop):
    status = checkout.submit(SHIPPING)
    assert status["state"] == "awaiting_payment"
    assert status["payment"]["order_id"] == "order_rzp_1"
    assert status["payment"]["amount"] == 40000
    assert status["payment"]["prefill"]["contact"] == SHIPPING["customer_phone"]

    assert widget.succeed()
    assert checkout.state == CheckoutState.COMPLETED
    assert checkout.confirmation_order_number == "ORD00001"
    assert filled_cart.get_cart() == []
    assert not filled_cart.held
    assert shop.verify_calls[0]["razorpay_order_id"] == "order_rzp_1"
    assert shop.orders["ORD00001"]["payment_status"] == "paid"


def test_order_payload_carries_raw_items(checkout, filled_cart, shop):
    checkout.submit(SHIPPING)
    sent = shop.create_calls[0]
    assert sent["customer_email"] == SHIPPING["customer_email"]
    assert sent["items"][0] == {
        "product_id": "P2",
        "product_name": "Headphones",
        "price": 100.0,
        "quantity": 3,
        "image": "img.jpg",
    }
    assert sent["subtotal"] == sent["total"] == 400.0


def test_missing_payment_session_fails_and_keeps_cart(checkout, filled_cart, shop, widget):
    shop.gateway_configured = False
    before = _records(filled_cart)
    status = checkout.submit(SHIPPING)
    assert status["state"] == "failed"
    assert status["error"]["reason"] == FailureReason.GATEWAY_NOT_CONFIGURED.value
    assert "contact admin" in status["error"]["message"]
    assert _records(filled_cart) == before
    assert not filled_cart.held
    assert widget.opened == []


def test_widget_cancel_returns_to_idle_with_cart_intact(checkout, filled_cart, widget):
    before = _records(filled_cart)
    checkout.submit(SHIPPING)
    assert widget.cancel()
    assert checkout.state == CheckoutState.IDLE
    assert checkout.last_error is None
    assert checkout.notice == "Payment cancelled"
    assert _records(filled_cart) == before
    assert not filled_cart.held


def test_user_cancel_then_retry(checkout, filled_cart, widget):
    checkout.submit(SHIPPING)
    first = widget.opened[-1].session_id
    checkout.cancel()
    assert checkout.state == CheckoutState.IDLE
    # late success for the abandoned session is dropped
    assert not widget.succeed(session_id=first)
    assert checkout.state == CheckoutState.IDLE

    checkout.submit(SHIPPING)
    assert widget.opened[-1].session_id != first
    assert widget.succeed()
    assert checkout.state == CheckoutState.COMPLETED


def test_backend_failure_on_create(checkout, filled_cart, shop):
    shop.fail_create = 500
    before = _records(filled_cart)
    status = checkout.submit(SHIPPING)
    assert status["state"] == "failed"
    assert status["error"]["reason"] == "network"
    assert _records(filled_cart) == before


def test_backend_rejection_is_validation_failure(checkout, filled_cart, shop):
    shop.fail_create = 422
    status = checkout.submit(SHIPPING)
    assert status["error"]["reason"] == "validation"


def test_unreachable_backend(cart, catalogue, widget):
    class DownSession:
        def request(self, *args, **kwargs):
            raise requests.ConnectionError("connection refused")

    cart.add_item(catalogue.get_product("P1"))
    orchestrator = CheckoutOrchestrator(cart, BackendClient("http://down", session=DownSession()), widget)
    status = orchestrator.submit(SHIPPING)
    assert status["state"] == "failed"
    assert status["error"]["reason"] == "network"
    assert cart.get_count() == 1


def test_verification_failure_keeps_cart(checkout, filled_cart, widget, shop):
    shop.fail_verify = True
    before = _records(filled_cart)
    checkout.submit(SHIPPING)
    assert widget.succeed()
    assert checkout.state == CheckoutState.FAILED
    assert checkout.last_error.reason == FailureReason.VERIFICATION_FAILED
    assert _records(filled_cart) == before


def test_payment_declined(checkout, filled_cart, widget):
    checkout.submit(SHIPPING)
    widget.fail(error="Card declined")
    assert checkout.state == CheckoutState.FAILED
    assert checkout.last_error.reason == FailureReason.PAYMENT_FAILED
    assert checkout.last_error.message == "Card declined"
    assert filled_cart.get_count() == 4


def test_invalid_form_and_empty_cart(checkout, cart, catalogue, shop):
    status = checkout.submit({**SHIPPING, "customer_phone": "12345"})
    assert status["error"]["reason"] == "validation"
    assert "customer_phone" in status["error"]["message"]

    status = checkout.submit(SHIPPING)
    assert status["error"]["reason"] == "empty_cart"
    assert shop.create_calls == []


def test_second_submit_rejected_while_in_flight(checkout, filled_cart, shop):
    checkout.submit(SHIPPING)
    with pytest.raises(CheckoutBusy):
        checkout.submit(SHIPPING)
    assert len(shop.create_calls) == 1


def test_submit_allowed_after_failure(checkout, filled_cart, shop):
    shop.fail_create = 503
    checkout.submit(SHIPPING)
    shop.fail_create = None
    assert checkout.submit(SHIPPING)["state"] == "awaiting_payment"


def test_cart_frozen_during_attempt(checkout, filled_cart, catalogue):
    checkout.submit(SHIPPING)
    filled_cart.add_item(catalogue.get_product("P3"), 5)
    filled_cart.remove_item("P1")
    assert [it.product_id for it in filled_cart.get_cart()] == ["P2", "P1"]
    assert checkout.snapshot.subtotal == Decimal("400.0")


def test_widget_amount_uses_backend_total(checkout, filled_cart, shop):
    shop.total_override = 350.5
    status = checkout.submit(SHIPPING)
    assert status["payment"]["amount"] == 35050
    assert filled_cart.get_total() == Decimal("400.0")


def test_stale_and_foreign_outcomes_are_ignored(checkout, filled_cart, widget):
    checkout.submit(SHIPPING)
    stale = PaymentOutcome(
        session_id="order_rzp_999",
        kind=PaymentOutcomeKind.SUCCESS,
        payment_id="pay_x",
        signature="sig_x",
    )
    assert not checkout.handle_payment_outcome(stale)
    assert not widget.deliver(stale)
    assert checkout.state == CheckoutState.AWAITING_PAYMENT

    foreign = PaymentOutcome(
        session_id="order_rzp_1",
        kind=PaymentOutcomeKind.SUCCESS,
        order_session_id="order_rzp_2",
        payment_id="pay_x",
        signature="sig_x",
    )
    assert not checkout.handle_payment_outcome(foreign)
    assert checkout.state == CheckoutState.AWAITING_PAYMENT


def test_duplicate_success_verifies_once(checkout, filled_cart, widget, shop):
    checkout.submit(SHIPPING)
    sid = widget.opened[-1].session_id
    assert widget.succeed()
    again = PaymentOutcome(session_id=sid, kind=PaymentOutcomeKind.SUCCESS, payment_id="p", signature="s")
    assert not checkout.handle_payment_outcome(again)
    assert len(shop.verify_calls) == 1


def test_incomplete_success_details_fail_verification(checkout, filled_cart, shop):
    checkout.submit(SHIPPING)
    outcome = PaymentOutcome(session_id="order_rzp_1", kind=PaymentOutcomeKind.SUCCESS, payment_id="pay_1")
    assert checkout.handle_payment_outcome(outcome)
    assert checkout.last_error.reason == FailureReason.VERIFICATION_FAILED
    assert shop.verify_calls == []


def test_widget_open_failure(cart, catalogue, backend):
    cart.add_item(catalogue.get_product("P1"))
    orchestrator = CheckoutOrchestrator(cart, backend, MockPaymentWidget(unavailable=True))
    status = orchestrator.submit(SHIPPING)
    assert status["state"] == "failed"
    assert status["error"]["reason"] == "payment_failed"
    assert not cart.held


def test_expire_stale_attempt(checkout, filled_cart, widget, clock):
    checkout.submit(SHIPPING)
    clock.now += 100
    assert not checkout.expire_stale(600)
    clock.now += 600
    assert checkout.expire_stale(600)
    assert checkout.state == CheckoutState.IDLE
    assert not widget.succeed(session_id="order_rzp_1")
    assert filled_cart.get_count() == 4


def test_clear_called_only_on_completion(checkout, filled_cart, widget, shop, monkeypatch):
    calls = []
    original = filled_cart.clear

    def counting_clear():
        calls.append(1)
        return original()

    monkeypatch.setattr(filled_cart, "clear", counting_clear)
    shop.gateway_configured = False
    checkout.submit(SHIPPING)
    shop.gateway_configured = True
    checkout.submit(SHIPPING)
    widget.cancel()
    checkout.submit(SHIPPING)
    widget.fail()
    assert calls == []
    checkout.submit(SHIPPING)
    widget.succeed()
    assert calls == [1]


def test_completion_with_failing_storage_leaves_cart_empty(checkout, filled_cart, widget, storage):
    checkout.submit(SHIPPING)
    storage.fail_writes = True
    assert widget.succeed()
    assert checkout.state == CheckoutState.COMPLETED
    assert filled_cart.get_cart() == []
    assert filled_cart.get_count() == 0

    storage.fail_writes = False
    assert filled_cart.get_cart() == []
    assert storage.read("cart") == []


@pytest.mark.parametrize("response", [[True], "ok", 42])
def test_non_object_verify_response_fails_attempt(checkout, filled_cart, widget, monkeypatch, response):
    monkeypatch.setattr(checkout.backend, "verify_payment", lambda *args: response)
    checkout.submit(SHIPPING)
    assert widget.succeed()
    assert checkout.state == CheckoutState.FAILED
    assert checkout.last_error.reason == FailureReason.VERIFICATION_FAILED
    assert not filled_cart.held
    assert filled_cart.get_count() == 4

    monkeypatch.undo()
    assert checkout.submit(SHIPPING)["state"] == "awaiting_payment"


def test_unexpected_verify_error_fails_attempt(checkout, filled_cart, widget, monkeypatch):
    def broken(*args):
        raise RuntimeError("decoder blew up")

    monkeypatch.setattr(checkout.backend, "verify_payment", broken)
    checkout.submit(SHIPPING)
    assert widget.succeed()
    assert checkout.state == CheckoutState.FAILED
    assert checkout.last_error.reason == FailureReason.VERIFICATION_FAILED
    assert not filled_cart.held


def test_unexpected_create_error_fails_attempt(checkout, filled_cart, monkeypatch):
    def broken(payload):
        raise RuntimeError("decoder blew up")

    monkeypatch.setattr(checkout.backend, "create_order", broken)
    status = checkout.submit(SHIPPING)
    assert status["state"] == "failed"
    assert status["error"]["reason"] == "network"
    assert not filled_cart.held


def test_expire_stale_recovers_hung_verification(checkout, filled_cart, widget, clock, monkeypatch):
    original = checkout.backend.verify_payment

    def slow_verify(*args):
        # the sweeper runs while the verify call is still outstanding
        clock.now += 700
        assert checkout.state == CheckoutState.VERIFYING
        assert checkout.expire_stale(600)
        return original(*args)

    monkeypatch.setattr(checkout.backend, "verify_payment", slow_verify)
    checkout.submit(SHIPPING)
    assert widget.succeed()
    # the late verify answer belonged to the expired attempt and is dropped
    assert checkout.state == CheckoutState.FAILED
    assert checkout.last_error.reason == FailureReason.VERIFICATION_FAILED
    assert not filled_cart.held
    assert filled_cart.get_count() == 4


def test_expire_stale_recovers_hung_create(checkout, filled_cart, clock, monkeypatch):
    original = checkout.backend.create_order

    def slow_create(payload):
        clock.now += 700
        assert checkout.expire_stale(600)
        return original(payload)

    monkeypatch.setattr(checkout.backend, "create_order", slow_create)
    status = checkout.submit(SHIPPING)
    assert status["state"] == "idle"
    assert not filled_cart.held
    assert checkout.submit(SHIPPING)["state"] == "awaiting_payment"
