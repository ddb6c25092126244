from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from payment_system.apps import validate_checkout_settings


@override_settings(PAYMENT_GATEWAY="mock", SHIPPING_CARRIER="mock")
class CheckoutSettingsValidationTest(SimpleTestCase):
    def test_test_settings_are_valid(self):
        validate_checkout_settings()

    @override_settings(SETTLEMENT_CURRENCY="RUPEE")
    def test_bad_settlement_currency(self):
        with self.assertRaisesMessage(ImproperlyConfigured, "SETTLEMENT_CURRENCY"):
            validate_checkout_settings()

    @override_settings(PAYMENT_MINIMUM_AMOUNT_MINOR=0)
    def test_non_positive_minimum(self):
        with self.assertRaisesMessage(ImproperlyConfigured, "PAYMENT_MINIMUM_AMOUNT_MINOR"):
            validate_checkout_settings()

    @override_settings(PAYMENT_GATEWAY="razorpay", RAZORPAY_KEY_ID="", RAZORPAY_KEY_SECRET="")
    def test_razorpay_without_keys(self):
        with self.assertRaisesMessage(ImproperlyConfigured, "RAZORPAY_KEY_ID"):
            validate_checkout_settings()

    @override_settings(SHIPPING_CARRIER="shiprocket", SHIPROCKET_EMAIL="", SHIPROCKET_PASSWORD="")
    def test_shiprocket_without_credentials(self):
        with self.assertRaisesMessage(ImproperlyConfigured, "SHIPROCKET_EMAIL"):
            validate_checkout_settings()
