from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from infrastructure.container import container
from infrastructure.shipping import ShippingUnavailable
from marketplace.models import Order
from marketplace.services.base import ErrorCodes
from marketplace.tests.factories import ProductFactory, SellerFactory, ShippableProductFactory, UserFactory
from payment_system.domain.services.currency_service import CurrencyConversionService, set_currency_service


class CheckoutEndpointsTest(TestCase):
    def setUp(self):
        container.configure_for_testing()
        set_currency_service(CurrencyConversionService.from_static_rates({"INR": Decimal("83.00")}))
        self.gateway = container.payment_gateway()

        self.client = APIClient()
        self.seller = SellerFactory()
        self.buyer = UserFactory()
        self.product = ProductFactory(seller=self.seller, price=Decimal("50.00"))
        self.client.force_authenticate(user=self.buyer)

    def tearDown(self):
        container.reset()

    def begin(self, product=None):
        response = self.client.post(
            reverse("payment_system:begin_checkout"), {"product_id": str((product or self.product).pk)}, format="json"
        )
        self.assertEqual(response.status_code, 201, response.data)
        return response.data

    def callback(self, launch, payment_id="pay_web_1", signature=None):
        gateway_order_id = launch["gateway_order_id"]
        return self.client.post(
            reverse("payment_system:payment_callback"),
            {
                "gateway_order_id": gateway_order_id,
                "payment_id": payment_id,
                "signature": signature or self.gateway.sign(gateway_order_id, payment_id),
            },
            format="json",
        )

    def test_begin_checkout_returns_launch_params(self):
        launch = self.begin()

        self.assertEqual(launch["amount"], "4150.00")
        self.assertEqual(launch["amount_minor"], 415000)
        self.assertEqual(launch["currency"], "INR")
        self.assertEqual(launch["launch_params"]["key"], "rzp_test_mock_key")

    def test_begin_checkout_requires_login(self):
        self.client.force_authenticate(user=None)

        response = self.client.post(
            reverse("payment_system:begin_checkout"), {"product_id": str(self.product.pk)}, format="json"
        )

        self.assertIn(response.status_code, (401, 403))

    def test_begin_checkout_invalid_body(self):
        response = self.client.post(reverse("payment_system:begin_checkout"), {"product_id": "nope"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], ErrorCodes.VALIDATION_ERROR)
        self.assertIn("product_id", response.data["fields"])

    def test_amount_too_small_is_400(self):
        cheap = ProductFactory(seller=self.seller, price=Decimal("0.01"))

        response = self.client.post(
            reverse("payment_system:begin_checkout"), {"product_id": str(cheap.pk)}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], ErrorCodes.AMOUNT_TOO_SMALL)

    def test_callback_completes_order(self):
        launch = self.begin()

        response = self.callback(launch)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], Order.STATUS_COMPLETED)

    def test_callback_bad_signature(self):
        launch = self.begin()

        response = self.callback(launch, signature="forged")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], ErrorCodes.SIGNATURE_INVALID)
        self.assertEqual(response.data["order"]["status"], Order.STATUS_FAILED)

    def test_callback_bad_signature_from_stranger_is_ignored(self):
        launch = self.begin()
        stranger = APIClient()
        stranger.force_authenticate(user=UserFactory())

        response = stranger.post(
            reverse("payment_system:payment_callback"),
            {"gateway_order_id": launch["gateway_order_id"], "payment_id": "pay_web_1", "signature": "bogus"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], ErrorCodes.SIGNATURE_INVALID)
        self.assertNotIn("order", response.data)
        self.assertEqual(Order.objects.get(pk=launch["order_id"]).status, Order.STATUS_CREATED)

        self.assertEqual(self.callback(launch).data["status"], Order.STATUS_COMPLETED)

    def test_losing_buyer_gets_conflict(self):
        rival = APIClient()
        rival.force_authenticate(user=UserFactory())
        first = self.begin()
        second = rival.post(
            reverse("payment_system:begin_checkout"), {"product_id": str(self.product.pk)}, format="json"
        ).data

        self.assertEqual(self.callback(first, payment_id="pay_a").status_code, 200)
        response = self.callback(second, payment_id="pay_b")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"], ErrorCodes.ALREADY_SOLD)
        self.assertTrue(response.data["order"]["refund_required"])

    def test_cancel(self):
        launch = self.begin()

        response = self.client.post(reverse("payment_system:cancel_checkout", args=[launch["order_id"]]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["failure_reason"], Order.FAILURE_CANCELLED)

    def test_cancel_other_buyers_order(self):
        launch = self.begin()
        self.client.force_authenticate(user=UserFactory())

        response = self.client.post(reverse("payment_system:cancel_checkout", args=[launch["order_id"]]))

        self.assertEqual(response.status_code, 403)

    def test_choose_delivery_requires_address(self):
        launch = self.begin()

        response = self.client.post(
            reverse("payment_system:choose_shipping", args=[launch["order_id"]]), {"method": "delivery"}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("address", response.data["fields"])

    def test_choose_delivery_and_track(self):
        shippable = ShippableProductFactory(seller=self.seller)
        launch = self.begin(shippable)

        response = self.client.post(
            reverse("payment_system:choose_shipping", args=[launch["order_id"]]),
            {
                "method": "delivery",
                "address": {
                    "name": "Asha Rao",
                    "phone": "9123456780",
                    "address": "12 MG Road",
                    "city": "Bengaluru",
                    "state": "Karnataka",
                    "pincode": "560001",
                },
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["quote"]["rate"], "49.00")
        self.assertEqual(response.data["quote"]["courier_id"], 1)

        self.assertEqual(self.callback(launch).status_code, 200)
        tracking = self.client.get(reverse("payment_system:order_tracking", args=[launch["order_id"]]))

        self.assertEqual(tracking.status_code, 200)
        self.assertEqual(tracking.data["status"], "IN TRANSIT")

        with patch.object(container.shipping_carrier(), "track_shipment", side_effect=ShippingUnavailable("down")):
            unavailable = self.client.get(reverse("payment_system:order_tracking", args=[launch["order_id"]]))

        self.assertEqual(unavailable.status_code, 503)
        self.assertEqual(unavailable.data["error"], ErrorCodes.TRACKING_UNAVAILABLE)

    def test_tracking_unknown_order(self):
        response = self.client.get(
            reverse("payment_system:order_tracking", args=["0f3c8f0a-4a7e-4c1f-9a55-6a8c1d2e3f40"])
        )

        self.assertEqual(response.status_code, 404)

    def test_exchange_rate_status(self):
        response = self.client.get(reverse("payment_system:exchange_rate_status"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["settlement_currency"], "INR")
        self.assertEqual(response.data["source"], "static")
