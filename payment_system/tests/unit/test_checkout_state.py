import pytest

from marketplace.models import Order
from payment_system.domain.services.checkout_state import CheckoutAttempt, CheckoutState, InvalidTransition


@pytest.mark.unit
class TestCheckoutAttempt:
    def test_happy_path_with_shipment(self):
        attempt = CheckoutAttempt(order_id="o-1")
        for state in (
            CheckoutState.AMOUNT_COMPUTED,
            CheckoutState.GATEWAY_ORDER_CREATED,
            CheckoutState.PAYMENT_VERIFIED,
            CheckoutState.PRODUCT_SOLD,
            CheckoutState.SHIPMENT_BOOKED,
            CheckoutState.COMPLETED,
        ):
            attempt.advance(state)

        assert attempt.state == CheckoutState.COMPLETED
        assert attempt.is_terminal
        assert len(attempt.history) == 6

    def test_pickup_skips_shipment(self):
        attempt = CheckoutAttempt(CheckoutState.PRODUCT_SOLD)

        attempt.advance(CheckoutState.COMPLETED)

        assert attempt.state == CheckoutState.COMPLETED

    def test_cannot_skip_payment_verification(self):
        attempt = CheckoutAttempt(CheckoutState.GATEWAY_ORDER_CREATED)

        with pytest.raises(InvalidTransition):
            attempt.advance(CheckoutState.PRODUCT_SOLD)

    def test_fail_from_any_non_terminal_state(self):
        for state in CheckoutState:
            if state in (CheckoutState.COMPLETED, CheckoutState.FAILED):
                continue
            attempt = CheckoutAttempt(state).fail("gateway_unavailable")
            assert attempt.state == CheckoutState.FAILED
            assert attempt.failure_reason == "gateway_unavailable"

    def test_terminal_states_are_final(self):
        with pytest.raises(InvalidTransition):
            CheckoutAttempt(CheckoutState.COMPLETED).fail("late")
        with pytest.raises(InvalidTransition):
            CheckoutAttempt(CheckoutState.FAILED).advance(CheckoutState.PAYMENT_VERIFIED)

    def test_for_order_maps_durable_status(self):
        order = Order(status=Order.STATUS_PAID)
        assert CheckoutAttempt.for_order(order).state == CheckoutState.PRODUCT_SOLD

        failed = Order(status=Order.STATUS_FAILED, failure_reason="signature_invalid")
        attempt = CheckoutAttempt.for_order(failed)
        assert attempt.state == CheckoutState.FAILED
        assert attempt.failure_reason == "signature_invalid"
