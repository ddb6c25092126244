"""
Checkout state machine.

    Initiated -> AmountComputed -> GatewayOrderCreated -> PaymentVerified
              -> ProductSold -> [ShipmentBooked] -> Completed

Failed(reason) is reachable from every non-terminal state. A CheckoutAttempt
is the transient, per-request view of one order's progress; the persisted
Order.status is the durable one.
"""

from enum import Enum
from typing import List, Optional, Tuple

from marketplace.ordering.domain.models import Order
from payment_system.domain.exceptions import CheckoutError


class CheckoutState(str, Enum):
    INITIATED = "initiated"
    AMOUNT_COMPUTED = "amount_computed"
    GATEWAY_ORDER_CREATED = "gateway_order_created"
    PAYMENT_VERIFIED = "payment_verified"
    PRODUCT_SOLD = "product_sold"
    SHIPMENT_BOOKED = "shipment_booked"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = {CheckoutState.COMPLETED, CheckoutState.FAILED}

ALLOWED_TRANSITIONS = {
    CheckoutState.INITIATED: {CheckoutState.AMOUNT_COMPUTED},
    CheckoutState.AMOUNT_COMPUTED: {CheckoutState.GATEWAY_ORDER_CREATED},
    CheckoutState.GATEWAY_ORDER_CREATED: {CheckoutState.PAYMENT_VERIFIED},
    CheckoutState.PAYMENT_VERIFIED: {CheckoutState.PRODUCT_SOLD},
    CheckoutState.PRODUCT_SOLD: {CheckoutState.SHIPMENT_BOOKED, CheckoutState.COMPLETED},
    CheckoutState.SHIPMENT_BOOKED: {CheckoutState.COMPLETED},
}

# Durable order status -> furthest state it proves
ORDER_STATUS_STATES = {
    Order.STATUS_CREATED: CheckoutState.GATEWAY_ORDER_CREATED,
    Order.STATUS_PAID: CheckoutState.PRODUCT_SOLD,
    Order.STATUS_SHIPMENT_BOOKED: CheckoutState.SHIPMENT_BOOKED,
    Order.STATUS_COMPLETED: CheckoutState.COMPLETED,
    Order.STATUS_FAILED: CheckoutState.FAILED,
}


class InvalidTransition(CheckoutError):
    code = "invalid_order_state"


class CheckoutAttempt:
    """
    Tracks one checkout attempt through the state machine.

    Usage:
        attempt = CheckoutAttempt()
        attempt.advance(CheckoutState.AMOUNT_COMPUTED)
        attempt.fail("signature_invalid")
    """

    def __init__(self, state: CheckoutState = CheckoutState.INITIATED, order_id=None):
        self.state = state
        self.order_id = order_id
        self.failure_reason: Optional[str] = None
        self.history: List[Tuple[CheckoutState, CheckoutState]] = []

    @classmethod
    def for_order(cls, order: Order) -> "CheckoutAttempt":
        attempt = cls(ORDER_STATUS_STATES[order.status], order_id=order.pk)
        attempt.failure_reason = order.failure_reason or None
        return attempt

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_advance(self, target: CheckoutState) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self.state, set())

    def advance(self, target: CheckoutState) -> "CheckoutAttempt":
        if not self.can_advance(target):
            raise InvalidTransition(f"Cannot move checkout {self.order_id} from {self.state.value} to {target.value}")
        self.history.append((self.state, target))
        self.state = target
        return self

    def fail(self, reason: str) -> "CheckoutAttempt":
        if self.is_terminal:
            raise InvalidTransition(f"Checkout {self.order_id} already ended in {self.state.value}")
        self.history.append((self.state, CheckoutState.FAILED))
        self.state = CheckoutState.FAILED
        self.failure_reason = reason
        return self

    def __repr__(self):
        return f"<CheckoutAttempt {self.order_id} {self.state.value}>"
