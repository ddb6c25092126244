"""
Shipping Infrastructure Tests
===============================

Unit tests for the shipping carrier abstraction layer.
"""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings

from infrastructure.shipping import (
    MockShippingCarrier,
    ShipmentRequest,
    ShippingAuthenticationError,
    ShippingCarrierFactory,
    ShippingCarrierInterface,
    ShippingException,
    ShippingUnavailable,
    ShiprocketCarrier,
)


def _response(status_code, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    response.text = text
    return response


SERVICEABILITY = {
    "data": {
        "available_courier_companies": [
            {"courier_name": "Express Air", "rate": 120.5, "etd": "Mar 04", "estimated_delivery_days": "2", "courier_company_id": 7},
            {"courier_name": "Surface Saver", "rate": 62, "etd": "Mar 08", "estimated_delivery_days": "6", "courier_company_id": 3},
        ]
    }
}


def _shipment_request(**overrides):
    fields = dict(
        order_id="9b2f",
        order_date=datetime(2025, 3, 1, 10, 30),
        pickup_postcode="400001",
        buyer_name="Asha Rao",
        buyer_email="asha@example.com",
        buyer_phone="9123456780",
        delivery_address="12 MG Road",
        delivery_city="Bengaluru",
        delivery_state="Karnataka",
        delivery_pincode="560001",
        item_name="Vintage lamp",
        item_sku="lamp-1",
        selling_price=Decimal("4150.00"),
        weight_kg=Decimal("1.2"),
    )
    fields.update(overrides)
    return ShipmentRequest(**fields)


class ShippingInterfaceTest(SimpleTestCase):
    def test_interface_is_abstract(self):
        with self.assertRaises(TypeError):
            ShippingCarrierInterface()


@override_settings(SHIPROCKET_TOKEN_TTL_SECONDS=3600)
@patch("tenacity.nap.time.sleep")
class ShiprocketCarrierTest(SimpleTestCase):
    """Test ShiprocketCarrier implementation."""

    def setUp(self):
        self.carrier = ShiprocketCarrier(email="ops@example.com", password="secret", api_url="https://carrier.test/v1")
        self.carrier.session.post = MagicMock(return_value=_response(200, {"token": "tok-1"}))
        self.carrier.session.request = MagicMock()

    def test_serviceability_sorted_by_rate(self, _sleep):
        self.carrier.session.request.return_value = _response(200, SERVICEABILITY)

        quotes = self.carrier.check_serviceability("400001", "560001", Decimal("1.2"))

        self.assertEqual([q.courier_name for q in quotes], ["Surface Saver", "Express Air"])
        self.assertEqual(quotes[0].rate, Decimal("62"))
        self.assertEqual(quotes[0].eta_days, 6)
        self.assertEqual(quotes[0].courier_id, 3)

        _, kwargs = self.carrier.session.request.call_args
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok-1")
        self.assertEqual(kwargs["params"]["pickup_postcode"], "400001")
        self.assertEqual(kwargs["params"]["cod"], 0)

    def test_serviceability_empty_list(self, _sleep):
        self.carrier.session.request.return_value = _response(200, {"data": {"available_courier_companies": []}})

        self.assertEqual(self.carrier.check_serviceability("400001", "999999", Decimal("0.5")), [])

    def test_serviceability_not_found_means_unserviceable(self, _sleep):
        self.carrier.session.request.return_value = _response(404, {"message": "No courier"})

        self.assertEqual(self.carrier.check_serviceability("400001", "999999", Decimal("0.5")), [])

    def test_token_is_cached_between_calls(self, _sleep):
        self.carrier.session.request.return_value = _response(200, SERVICEABILITY)

        self.carrier.check_serviceability("400001", "560001", Decimal("1"))
        self.carrier.check_serviceability("400001", "560002", Decimal("1"))

        self.assertEqual(self.carrier.session.post.call_count, 1)

    def test_expired_token_reauthenticates_transparently(self, _sleep):
        """A 401 mid-session triggers one re-login and the call succeeds."""
        self.carrier.session.post.side_effect = [
            _response(200, {"token": "tok-1"}),
            _response(200, {"token": "tok-2"}),
        ]
        self.carrier.session.request.side_effect = [
            _response(401, {"message": "Token has expired"}),
            _response(200, SERVICEABILITY),
        ]

        quotes = self.carrier.check_serviceability("400001", "560001", Decimal("1"))

        self.assertEqual(len(quotes), 2)
        self.assertEqual(self.carrier.session.post.call_count, 2)
        last_headers = self.carrier.session.request.call_args_list[-1][1]["headers"]
        self.assertEqual(last_headers["Authorization"], "Bearer tok-2")

    def test_local_ttl_expiry_forces_login(self, _sleep):
        self.carrier.session.request.return_value = _response(200, SERVICEABILITY)
        self.carrier.check_serviceability("400001", "560001", Decimal("1"))

        self.carrier._token_expires_at = 0.0
        self.carrier.check_serviceability("400001", "560001", Decimal("1"))

        self.assertEqual(self.carrier.session.post.call_count, 2)

    def test_login_rejected(self, _sleep):
        self.carrier.session.post.return_value = _response(400, {"message": "Invalid credentials"})

        with self.assertRaises(ShippingAuthenticationError):
            self.carrier.check_serviceability("400001", "560001", Decimal("1"))

    def test_serviceability_retried_then_unavailable(self, _sleep):
        self.carrier.session.request.side_effect = requests.ConnectionError("down")

        with self.assertRaises(ShippingUnavailable):
            self.carrier.check_serviceability("400001", "560001", Decimal("1"))

        self.assertEqual(self.carrier.session.request.call_count, 3)

    def test_serviceability_recovers_on_retry(self, _sleep):
        self.carrier.session.request.side_effect = [_response(503), _response(200, SERVICEABILITY)]

        quotes = self.carrier.check_serviceability("400001", "560001", Decimal("1"))

        self.assertEqual(len(quotes), 2)

    def test_book_shipment_assigns_awb(self, _sleep):
        self.carrier.session.request.side_effect = [
            _response(200, {"order_id": 5551, "shipment_id": 7771, "status": "NEW"}),
            _response(
                200,
                {"awb_assign_status": 1, "response": {"data": {"awb_code": "1411234567", "courier_name": "Surface Saver"}}},
            ),
        ]

        booking = self.carrier.book_shipment(_shipment_request(courier_id=3))

        self.assertEqual(booking.carrier_order_id, "5551")
        self.assertEqual(booking.shipment_id, "7771")
        self.assertEqual(booking.awb_code, "1411234567")
        self.assertEqual(booking.courier_name, "Surface Saver")
        self.assertEqual(booking.tracking_url, "https://shiprocket.co/tracking/1411234567")

        adhoc_call, assign_call = self.carrier.session.request.call_args_list
        adhoc = adhoc_call[1]["json"]
        self.assertTrue(adhoc_call[0][1].endswith("/orders/create/adhoc"))
        self.assertEqual(adhoc["payment_method"], "Prepaid")
        self.assertEqual(adhoc["billing_customer_name"], "Asha")
        self.assertEqual(adhoc["billing_last_name"], "Rao")
        self.assertEqual(adhoc["order_items"][0]["units"], 1)
        self.assertEqual(assign_call[1]["json"], {"shipment_id": "7771", "courier_id": 3})

    def test_book_shipment_awb_failure(self, _sleep):
        self.carrier.session.request.side_effect = [
            _response(200, {"order_id": 5551, "shipment_id": 7771}),
            _response(200, {"awb_assign_status": 0, "message": "No courier serviceable"}),
        ]

        with self.assertRaises(ShippingException):
            self.carrier.book_shipment(_shipment_request())

    def test_book_shipment_is_not_retried(self, _sleep):
        self.carrier.session.request.side_effect = requests.ConnectionError("down")

        with self.assertRaises(ShippingUnavailable):
            self.carrier.book_shipment(_shipment_request())

        self.assertEqual(self.carrier.session.request.call_count, 1)

    def test_book_shipment_html_body_raises_carrier_error(self, _sleep):
        page = _response(200, text="<html>Bad gateway</html>")
        page.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        self.carrier.session.request.side_effect = [page]

        with self.assertRaises(ShippingUnavailable):
            self.carrier.book_shipment(_shipment_request())

        self.assertEqual(self.carrier.session.request.call_count, 1)

    def test_book_shipment_non_object_body_raises_carrier_error(self, _sleep):
        self.carrier.session.request.side_effect = [_response(200, ["unexpected"])]

        with self.assertRaises(ShippingException):
            self.carrier.book_shipment(_shipment_request())

    def test_login_html_body_raises_carrier_error(self, _sleep):
        page = _response(200, text="<html>Maintenance</html>")
        page.json.side_effect = ValueError("no json")
        self.carrier.session.post.return_value = page

        with self.assertRaises(ShippingUnavailable):
            self.carrier.book_shipment(_shipment_request())

        self.carrier.session.request.assert_not_called()

    def test_track_shipment(self, _sleep):
        self.carrier.session.request.return_value = _response(
            200,
            {
                "tracking_data": {
                    "shipment_track": [{"current_status": "IN TRANSIT"}],
                    "shipment_track_activities": [
                        {"date": "2025-03-02 11:00:00", "activity": "Shipment in transit", "location": "Pune"}
                    ],
                }
            },
        )

        status = self.carrier.track_shipment("1411234567")

        self.assertEqual(status.status, "IN TRANSIT")
        self.assertEqual(status.location, "Pune")
        self.assertEqual(status.last_update, "2025-03-02 11:00:00")

    def test_track_shipment_unavailable(self, _sleep):
        self.carrier.session.request.return_value = _response(500)

        with self.assertRaises(ShippingUnavailable):
            self.carrier.track_shipment("1411234567")


class MockShippingCarrierTest(SimpleTestCase):
    def test_unserviceable_postcode(self):
        carrier = MockShippingCarrier(unserviceable_postcodes=["999999"])
        self.assertEqual(carrier.check_serviceability("400001", "999999", Decimal("1")), [])

    def test_book_and_track(self):
        carrier = MockShippingCarrier()
        booking = carrier.book_shipment(_shipment_request())

        self.assertTrue(booking.awb_code.startswith("MOCKAWB"))
        self.assertEqual(carrier.track_shipment(booking.awb_code).status, "IN TRANSIT")

    def test_fail_bookings(self):
        carrier = MockShippingCarrier()
        carrier.fail_bookings = True

        with self.assertRaises(ShippingException):
            carrier.book_shipment(_shipment_request())


class ShippingCarrierFactoryTest(SimpleTestCase):
    def test_create_mock(self):
        self.assertIsInstance(ShippingCarrierFactory.create("mock"), MockShippingCarrier)

    def test_create_shiprocket(self):
        self.assertIsInstance(ShippingCarrierFactory.create("shiprocket"), ShiprocketCarrier)

    def test_invalid_backend(self):
        with self.assertRaises(ValueError):
            ShippingCarrierFactory.create("fedex")
