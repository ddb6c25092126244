"""
CheckoutService - Checkout orchestration

Ties currency conversion, the payment gateway, the sell transition and
fulfillment together for a single-product purchase.

Flow:
    begin_checkout          Initiated -> AmountComputed -> GatewayOrderCreated
    submit_payment_callback -> PaymentVerified -> ProductSold -> [ShipmentBooked] -> Completed
    choose_shipping         delivery address + carrier quote while the order awaits payment
    cancel_checkout         buyer abandoned the payment UI -> Failed(cancelled)

Only the sell transition needs atomicity; it is a single conditional update in
OrderStore.try_sell(). No product lock is held across gateway or carrier calls.
"""

import logging
import re
import uuid
from datetime import timedelta
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.utils import timezone

from infrastructure.payments import PaymentException, PaymentGatewayUnavailable, PaymentValidationError
from infrastructure.shipping import CourierQuote, ShippingException
from marketplace.catalog.domain.models import Product
from marketplace.ordering.domain.models import Order
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from payment_system.domain.events.definitions import CheckoutFailed, PaymentSucceeded, RefundRequired
from payment_system.domain.exceptions import AmountTooSmall, ConflictError, UnsupportedCurrency
from payment_system.domain.services.checkout_state import CheckoutAttempt, CheckoutState
from payment_system.infra.observability.metrics import (
    checkout_outcomes_total,
    checkout_settlement_value,
    refund_signals_total,
    sell_conflicts_total,
    signature_verifications_total,
)
from payment_system.security import PaymentAuditLogger

logger = logging.getLogger(__name__)

RECEIPT_PREFIX = "rcpt_"
PINCODE_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z \-]{2,10}$")
REQUIRED_ADDRESS_FIELDS = ("address", "city", "state", "pincode")

GENERIC_RETRY_MESSAGE = "We could not reach the payment provider. Please try again in a moment."
AMOUNT_TOO_SMALL_MESSAGE = (
    "This item's price is below the minimum online payment amount. "
    "Please contact the seller through chat to arrange payment."
)


@dataclass
class CheckoutLaunch:
    """What the client needs to open the payment UI."""

    order_id: str
    gateway_order_id: str
    launch_params: Dict[str, Any]
    amount: Decimal
    amount_minor: int
    currency: str
    listing_amount: Decimal
    listing_currency: str
    rate_is_stale: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "gateway_order_id": self.gateway_order_id,
            "launch_params": self.launch_params,
            "amount": str(self.amount),
            "amount_minor": self.amount_minor,
            "currency": self.currency,
            "listing_amount": str(self.listing_amount),
            "listing_currency": self.listing_currency,
            "rate_is_stale": self.rate_is_stale,
        }


@dataclass
class OrderOutcome:
    """Order status as reported back to the buyer."""

    order_id: str
    status: str
    failure_reason: Optional[str] = None
    refund_required: bool = False
    shipping_booking_failed: bool = False
    awb_code: Optional[str] = None
    tracking_url: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderOutcome":
        return cls(
            order_id=str(order.pk),
            status=order.status,
            failure_reason=order.failure_reason or None,
            refund_required=order.refund_required,
            shipping_booking_failed=order.shipping_booking_failed,
            awb_code=order.awb_code or None,
            tracking_url=order.tracking_url or None,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "failure_reason": self.failure_reason,
            "refund_required": self.refund_required,
            "shipping_booking_failed": self.shipping_booking_failed,
            "awb_code": self.awb_code,
            "tracking_url": self.tracking_url,
        }


@dataclass
class ShippingChoice:
    """Result of choose_shipping. quote is None when only pickup is possible."""

    order_id: str
    method: str
    quote: Optional[CourierQuote] = None
    options: List[CourierQuote] = field(default_factory=list)
    pickup_only: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "method": self.method,
            "quote": self.quote.as_dict() if self.quote else None,
            "options": [option.as_dict() for option in self.options],
            "pickup_only": self.pickup_only,
        }


class CheckoutService(BaseService):
    """
    Service orchestrating one checkout attempt per call.

    Responsibilities:
    - Price a product in the settlement currency and reserve a gateway order
    - Verify payment callbacks before anything is marked paid
    - Arbitrate concurrent payments for the same product through the store
    - Hand paid orders to fulfillment and emit the refund signal when a
      verified payment cannot be honoured

    Dependencies:
    - PaymentGatewayInterface, CurrencyConversionService, OrderStore,
      FulfillmentService, ShippingCarrierInterface, EventBus
    """

    def __init__(self, gateway, currency_service, store, fulfillment, carrier, event_bus):
        super().__init__()
        self.gateway = gateway
        self.currency_service = currency_service
        self.store = store
        self.fulfillment = fulfillment
        self.carrier = carrier
        self.event_bus = event_bus

    # ------------------------------------------------------------------
    # Steps 1-2: price the product and reserve a gateway order
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def begin_checkout(self, product_id, buyer) -> ServiceResult[CheckoutLaunch]:
        """
        Start a checkout for product_id.

        The Order row carrying the gateway order id is written before the
        launch parameters are returned, so every gateway order the buyer can
        pay is reconcilable. Safe to retry: nothing outside this service
        changes until a payment is verified.

        Returns:
            ServiceResult with CheckoutLaunch
        """
        attempt = CheckoutAttempt()

        product = Product.objects.filter(pk=product_id).first()
        if product is None:
            return service_err(ErrorCodes.PRODUCT_NOT_FOUND, "Product not found")
        if product.seller_id == buyer.pk:
            return service_err(ErrorCodes.OWN_PRODUCT, "You cannot buy your own listing")
        if not product.is_sellable:
            return service_err(ErrorCodes.PRODUCT_UNAVAILABLE, "This item is no longer available")

        try:
            settlement = self.currency_service.to_settlement(product.price, product.currency)
        except AmountTooSmall as e:
            self.logger.info(f"[CHECKOUT] Product {product.pk} below payable minimum: {e}")
            checkout_outcomes_total.labels(outcome="amount_too_small").inc()
            return service_err(ErrorCodes.AMOUNT_TOO_SMALL, AMOUNT_TOO_SMALL_MESSAGE)
        except UnsupportedCurrency as e:
            return service_err(ErrorCodes.UNSUPPORTED_CURRENCY, str(e))
        attempt.advance(CheckoutState.AMOUNT_COMPUTED)

        if settlement.rate_is_stale:
            self.logger.warning(
                f"[FX] Pricing product {product.pk} with stale rates from {settlement.rate_source}"
            )

        order_id = uuid.uuid4()
        metadata = {
            "receipt": f"{RECEIPT_PREFIX}{order_id.hex[:24]}",
            "description": product.name[:255],
            "notes": {
                "order_id": str(order_id),
                "product_id": str(product.pk),
                "product_name": product.name[:200],
            },
            "prefill": {
                "name": buyer.get_full_name() or buyer.get_username(),
                "email": buyer.email,
            },
        }

        try:
            gateway_order = self.gateway.create_order(settlement.amount_minor, settlement.currency, metadata)
        except PaymentValidationError as e:
            self.logger.info(f"[PAYMENT] Gateway rejected amount for product {product.pk}: {e}")
            return service_err(ErrorCodes.AMOUNT_TOO_SMALL, AMOUNT_TOO_SMALL_MESSAGE)
        except PaymentGatewayUnavailable as e:
            self.logger.error(f"[PAYMENT] Gateway unavailable creating order for product {product.pk}: {e}")
            checkout_outcomes_total.labels(outcome="gateway_unavailable").inc()
            return service_err(ErrorCodes.PAYMENT_PROVIDER_ERROR, GENERIC_RETRY_MESSAGE)
        except PaymentException as e:
            self.logger.error(f"[PAYMENT] Gateway order creation failed for product {product.pk}: {e}")
            checkout_outcomes_total.labels(outcome="gateway_error").inc()
            return service_err(ErrorCodes.PAYMENT_PROVIDER_ERROR, GENERIC_RETRY_MESSAGE)

        order = self.store.create_order(
            id=order_id,
            product=product,
            buyer=buyer,
            seller_id=product.seller_id,
            amount=settlement.amount,
            amount_minor=settlement.amount_minor,
            currency=settlement.currency,
            listing_amount=settlement.listing_amount,
            listing_currency=settlement.listing_currency,
            exchange_rate=settlement.exchange_rate,
            rate_source=settlement.rate_source,
            rate_is_stale=settlement.rate_is_stale,
            gateway_order_id=gateway_order.gateway_order_id,
            shipping_method=product.shipping_method,
            buyer_name=buyer.get_full_name() or buyer.get_username(),
            buyer_email=buyer.email or "",
        )
        attempt.order_id = order.pk
        attempt.advance(CheckoutState.GATEWAY_ORDER_CREATED)

        PaymentAuditLogger.log_checkout_started(
            buyer.pk, order.pk, gateway_order.gateway_order_id, settlement.amount, settlement.currency
        )
        checkout_settlement_value.labels(currency=settlement.currency).observe(float(settlement.amount))

        return service_ok(
            CheckoutLaunch(
                order_id=str(order.pk),
                gateway_order_id=gateway_order.gateway_order_id,
                launch_params=gateway_order.launch_params,
                amount=settlement.amount,
                amount_minor=settlement.amount_minor,
                currency=settlement.currency,
                listing_amount=settlement.listing_amount,
                listing_currency=settlement.listing_currency,
                rate_is_stale=settlement.rate_is_stale,
            )
        )

    # ------------------------------------------------------------------
    # Steps 3-6: verify, sell, fulfil
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def submit_payment_callback(
        self,
        gateway_order_id: str,
        payment_id: str,
        signature: str,
        ip_address: Optional[str] = None,
        caller=None,
    ) -> ServiceResult[OrderOutcome]:
        """
        Handle the gateway's completed-payment callback.

        The signature is verified before anything else changes. A signature
        that does not verify fails the order only when caller is its buyer;
        from anyone else it is audit-logged and nothing changes. Replaying a
        verified callback returns the current status without side effects.
        A verified payment that loses the sell race, or arrives for an order
        that was cancelled or expired, is recorded and flagged for refund.

        Returns:
            ServiceResult with OrderOutcome (value is set on failures too)
        """
        order = self.store.get_by_gateway_order_id(gateway_order_id)
        if order is None:
            self.logger.warning(f"[PAYMENT] Callback for unknown gateway order {gateway_order_id}")
            return service_err(ErrorCodes.ORDER_NOT_FOUND, "Order not found")

        try:
            verification = self.gateway.verify_callback(
                {"gateway_order_id": gateway_order_id, "payment_id": payment_id, "signature": signature}
            )
        except PaymentValidationError as e:
            return service_err(ErrorCodes.VALIDATION_ERROR, str(e))

        attempt = CheckoutAttempt.for_order(order)

        if not verification.verified:
            return self._reject_signature(order, attempt, payment_id, signature, ip_address, caller)

        signature_verifications_total.labels(result="valid").inc()
        PaymentAuditLogger.log_payment_verified(order.pk, gateway_order_id, payment_id)

        if order.status != Order.STATUS_CREATED:
            return self._settled_order_callback(order, payment_id, signature)

        attempt.advance(CheckoutState.PAYMENT_VERIFIED)

        try:
            sold = self.store.try_sell(order, payment_id, signature)
        except ConflictError:
            # Order left 'created' while we verified: a concurrent replay, cancel or expiry.
            return self._settled_order_callback(self.store.get_order(order.pk), payment_id, signature)

        if not sold:
            return self._lost_sell_race(order, attempt, payment_id, signature)

        attempt.advance(CheckoutState.PRODUCT_SOLD)
        now = timezone.now()
        self._publish(
            PaymentSucceeded(
                order_id=str(order.pk),
                product_id=str(order.product_id),
                gateway_order_id=gateway_order_id,
                payment_id=payment_id,
                amount=order.amount,
                currency=order.currency,
                occurred_at=now,
            )
        )

        order = self.fulfillment.complete_sale(self.store.get_order(order.pk))
        if order.status == Order.STATUS_COMPLETED:
            if order.awb_code:
                attempt.advance(CheckoutState.SHIPMENT_BOOKED)
            attempt.advance(CheckoutState.COMPLETED)
            checkout_outcomes_total.labels(outcome="completed").inc()
        else:
            checkout_outcomes_total.labels(outcome="paid_pending_shipment").inc()

        self.logger.info(f"[CHECKOUT] Order {order.pk} settled as {order.status} ({attempt.state.value})")
        return service_ok(OrderOutcome.from_order(order))

    def _reject_signature(self, order, attempt, payment_id, signature, ip_address, caller) -> ServiceResult:
        signature_verifications_total.labels(result="invalid").inc()
        is_buyer = caller is not None and caller.pk == order.buyer_id
        PaymentAuditLogger.log_security_event(
            "payment_signature_mismatch" if is_buyer else "foreign_payment_signature_mismatch",
            ip_address=ip_address,
            user_id=caller.pk if caller is not None else None,
            details={
                "order_id": str(order.pk),
                "gateway_order_id": order.gateway_order_id,
                "payment_id": payment_id,
                "signature": signature,
            },
        )

        if not is_buyer:
            self.logger.warning(f"[SECURITY] Unverified callback for order {order.pk} from a non-buyer, order unchanged")
            return service_err(ErrorCodes.SIGNATURE_INVALID, "We could not confirm this payment. Please try again.")

        if self.store.fail_order(order.pk, Order.FAILURE_SIGNATURE_INVALID):
            attempt.fail(Order.FAILURE_SIGNATURE_INVALID)
            checkout_outcomes_total.labels(outcome="signature_invalid").inc()
            PaymentAuditLogger.log_payment_failure(
                order.pk, Order.FAILURE_SIGNATURE_INVALID, order.gateway_order_id, payment_id
            )
            self._publish(
                CheckoutFailed(
                    order_id=str(order.pk),
                    product_id=str(order.product_id),
                    reason=Order.FAILURE_SIGNATURE_INVALID,
                    occurred_at=timezone.now(),
                )
            )

        current = self.store.get_order(order.pk)
        return service_err(
            ErrorCodes.SIGNATURE_INVALID,
            "We could not confirm this payment. Please try again.",
            value=OrderOutcome.from_order(current),
        )

    def _lost_sell_race(self, order, attempt, payment_id, signature) -> ServiceResult:
        sell_conflicts_total.inc()
        failed = self.store.fail_order(
            order.pk,
            Order.FAILURE_ALREADY_SOLD,
            gateway_payment_id=payment_id,
            gateway_signature=signature,
            refund_required=True,
        )
        if not failed:
            return self._settled_order_callback(self.store.get_order(order.pk), payment_id, signature)

        attempt.fail(Order.FAILURE_ALREADY_SOLD)
        checkout_outcomes_total.labels(outcome="already_sold").inc()
        self.logger.warning(f"[SELL] Order {order.pk} paid for already-sold product {order.product_id}")
        PaymentAuditLogger.log_payment_failure(
            order.pk, Order.FAILURE_ALREADY_SOLD, order.gateway_order_id, payment_id
        )
        self._emit_refund(order, payment_id, Order.FAILURE_ALREADY_SOLD)
        self._publish(
            CheckoutFailed(
                order_id=str(order.pk),
                product_id=str(order.product_id),
                reason=Order.FAILURE_ALREADY_SOLD,
                occurred_at=timezone.now(),
            )
        )

        return service_err(
            ErrorCodes.ALREADY_SOLD,
            "This item is no longer available. Your payment will be refunded.",
            value=OrderOutcome.from_order(self.store.get_order(order.pk)),
        )

    def _settled_order_callback(self, order: Order, payment_id: str, signature: str) -> ServiceResult:
        """Verified callback for an order that already left 'created'."""
        if order.gateway_payment_id == payment_id:
            self.logger.info(f"[PAYMENT] Replayed callback for order {order.pk} ({order.status}), no action")
            return service_ok(OrderOutcome.from_order(order))

        if order.status == Order.STATUS_FAILED:
            if self.store.record_late_payment(order.pk, payment_id, signature):
                self.logger.warning(
                    f"[PAYMENT] Verified payment {payment_id} arrived for {order.failure_reason} order {order.pk}"
                )
                self._emit_refund(order, payment_id, order.failure_reason or Order.FAILURE_CANCELLED)
            return service_ok(OrderOutcome.from_order(self.store.get_order(order.pk)))

        # A second, different payment against an order that is already paid
        self.logger.warning(f"[PAYMENT] Duplicate payment {payment_id} for already-paid order {order.pk}")
        self._emit_refund(order, payment_id, "duplicate_payment")
        return service_ok(OrderOutcome.from_order(order))

    def _emit_refund(self, order: Order, payment_id: str, reason: str) -> None:
        refund_signals_total.labels(reason=reason).inc()
        self._publish(
            RefundRequired(
                order_id=str(order.pk),
                product_id=str(order.product_id),
                gateway_order_id=order.gateway_order_id,
                payment_id=payment_id,
                amount=order.amount,
                currency=order.currency,
                reason=reason,
                occurred_at=timezone.now(),
            )
        )

    # ------------------------------------------------------------------
    # Shipping choice and cancellation (order still awaiting payment)
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def choose_shipping(
        self, order_id, buyer, method: str, address: Optional[Dict[str, str]] = None
    ) -> ServiceResult[ShippingChoice]:
        """
        Record the buyer's shipping choice for an unpaid order.

        For delivery the address is validated first, then the carrier is asked
        for quotes. No courier available is a normal outcome: the order falls
        back to pickup and pickup_only is set.

        Returns:
            ServiceResult with ShippingChoice
        """
        order = self.store.get_order(order_id)
        if order is None:
            return service_err(ErrorCodes.ORDER_NOT_FOUND, "Order not found")
        if order.buyer_id != buyer.pk:
            return service_err(ErrorCodes.NOT_ORDER_OWNER, "You do not have access to this order")
        if order.status != Order.STATUS_CREATED:
            return service_err(ErrorCodes.INVALID_ORDER_STATE, "Shipping can only be changed before payment")

        if method == Order.SHIPPING_PICKUP:
            return self._set_pickup(order, pickup_only=False)

        if method != Order.SHIPPING_DELIVERY:
            return service_err(ErrorCodes.VALIDATION_ERROR, f"Unknown shipping method '{method}'")

        address_error = self.validate_address(address)
        if address_error:
            return service_err(ErrorCodes.VALIDATION_ERROR, address_error)

        product = order.product
        if not product.requires_carrier or not product.has_pickup_address:
            self.logger.info(f"[SHIPPING] Product {product.pk} does not ship, offering pickup only")
            return self._set_pickup(order, pickup_only=True)

        try:
            quotes = self.carrier.check_serviceability(
                product.seller_pincode,
                address["pincode"].strip(),
                self.fulfillment.parcel_weight(product.weight_kg),
                False,
            )
        except ShippingException as e:
            self.logger.warning(f"[SHIPPING] Serviceability check failed for order {order.pk}: {e}")
            return service_err(
                ErrorCodes.SHIPPING_UNAVAILABLE,
                "Delivery options are temporarily unavailable. Please try again or choose pickup.",
            )

        if not quotes:
            self.logger.info(
                f"[SHIPPING] No courier from {product.seller_pincode} to {address['pincode']}, pickup only"
            )
            return self._set_pickup(order, pickup_only=True)

        best = quotes[0]
        updated = self.store.update_order(
            order.pk,
            expected_statuses=[Order.STATUS_CREATED],
            shipping_method=Order.SHIPPING_DELIVERY,
            delivery_address=address["address"].strip(),
            delivery_city=address["city"].strip(),
            delivery_state=address["state"].strip(),
            delivery_pincode=address["pincode"].strip(),
            buyer_name=(address.get("name") or order.buyer_name).strip(),
            buyer_phone=(address.get("phone") or order.buyer_phone).strip(),
            shipping_quote=best.rate,
            courier_id=best.courier_id,
            courier_name=best.courier_name,
        )
        if not updated:
            return service_err(ErrorCodes.INVALID_ORDER_STATE, "Shipping can only be changed before payment")

        return service_ok(
            ShippingChoice(order_id=str(order.pk), method=Order.SHIPPING_DELIVERY, quote=best, options=quotes)
        )

    def _set_pickup(self, order: Order, pickup_only: bool) -> ServiceResult[ShippingChoice]:
        updated = self.store.update_order(
            order.pk,
            expected_statuses=[Order.STATUS_CREATED],
            shipping_method=Order.SHIPPING_PICKUP,
            delivery_address="",
            delivery_city="",
            delivery_state="",
            delivery_pincode="",
            shipping_quote=None,
            courier_id=None,
            courier_name="",
        )
        if not updated:
            return service_err(ErrorCodes.INVALID_ORDER_STATE, "Shipping can only be changed before payment")
        return service_ok(ShippingChoice(order_id=str(order.pk), method=Order.SHIPPING_PICKUP, pickup_only=pickup_only))

    @staticmethod
    def validate_address(address: Optional[Dict[str, str]]) -> Optional[str]:
        """Return an error message for an unusable delivery address, or None."""
        if not address:
            return "A delivery address is required for carrier delivery"
        missing = [name for name in REQUIRED_ADDRESS_FIELDS if not str(address.get(name) or "").strip()]
        if missing:
            return f"Missing delivery address field(s): {', '.join(missing)}"
        if not PINCODE_RE.match(str(address["pincode"]).strip()):
            return "Delivery postal code is not valid"
        return None

    @BaseService.log_performance
    def cancel_checkout(self, order_id, buyer) -> ServiceResult[OrderOutcome]:
        """
        Buyer abandoned the payment UI.

        Moves a 'created' order to Failed(cancelled) and leaves the product
        available. Idempotent; a payment callback racing this call is settled
        by the conditional updates, and a verified payment that lands after
        cancellation is flagged for refund.
        """
        order = self.store.get_order(order_id)
        if order is None:
            return service_err(ErrorCodes.ORDER_NOT_FOUND, "Order not found")
        if order.buyer_id != buyer.pk:
            return service_err(ErrorCodes.NOT_ORDER_OWNER, "You do not have access to this order")

        if self.store.fail_order(order.pk, Order.FAILURE_CANCELLED):
            checkout_outcomes_total.labels(outcome="cancelled").inc()
            self._publish(
                CheckoutFailed(
                    order_id=str(order.pk),
                    product_id=str(order.product_id),
                    reason=Order.FAILURE_CANCELLED,
                    occurred_at=timezone.now(),
                )
            )
            return service_ok(OrderOutcome.from_order(self.store.get_order(order.pk)))

        current = self.store.get_order(order.pk)
        if current.status == Order.STATUS_FAILED:
            return service_ok(OrderOutcome.from_order(current))
        return service_err(
            ErrorCodes.INVALID_ORDER_STATE,
            "Payment for this order has already been completed",
            value=OrderOutcome.from_order(current),
        )

    def expire_stale_checkouts(self, timeout_minutes: int) -> int:
        """Fail unpaid orders older than timeout_minutes. Products are untouched."""
        cutoff = timezone.now() - timedelta(minutes=timeout_minutes)
        return self.store.expire_stale_orders(cutoff)

    def _publish(self, event) -> None:
        self.event_bus.publish(event.event_type, event.to_payload())
