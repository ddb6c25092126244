from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

from django.core.management import CommandError, call_command
from django.test import TestCase
from django.utils import timezone

from infrastructure.container import container
from marketplace.models import Order
from marketplace.tests.factories import OrderFactory
from payment_system.domain.exceptions import UpstreamUnavailable
from payment_system.domain.services.currency_service import (
    SOURCE_API,
    CurrencyConversionService,
    get_currency_service,
    set_currency_service,
)
from payment_system.models import ExchangeRate
from payment_system.Tasks import expire_stale_checkouts_task, refresh_exchange_rates_task


class ExpireStaleCheckoutsTaskTest(TestCase):
    def setUp(self):
        container.configure_for_testing()

    def tearDown(self):
        container.reset()

    def test_expires_only_old_unpaid_orders(self):
        old = OrderFactory()
        recent = OrderFactory()
        paid = OrderFactory(status=Order.STATUS_PAID)
        Order.objects.filter(pk__in=[old.pk, paid.pk]).update(created_at=timezone.now() - timedelta(hours=1))

        result = expire_stale_checkouts_task(timeout_minutes=30)

        self.assertEqual(result, {"success": True, "expired_count": 1, "timeout_minutes": 30})
        self.assertEqual(Order.objects.get(pk=old.pk).failure_reason, Order.FAILURE_EXPIRED)
        self.assertEqual(Order.objects.get(pk=recent.pk).status, Order.STATUS_CREATED)
        self.assertEqual(Order.objects.get(pk=paid.pk).status, Order.STATUS_PAID)


class RefreshExchangeRatesTaskTest(TestCase):
    def tearDown(self):
        set_currency_service(None)

    def _service(self, rate_source):
        service = CurrencyConversionService(base_currency="USD", background_refresh=False, rate_source=rate_source)
        set_currency_service(service)
        return service

    def test_refresh_replaces_snapshot(self):
        rate_source = MagicMock()
        rate_source.fetch_rates.return_value = {"USD": Decimal("1"), "INR": Decimal("83.40")}
        service = self._service(rate_source)

        result = refresh_exchange_rates_task(cleanup=False)

        self.assertTrue(result["success"])
        self.assertEqual(result["source"], SOURCE_API)
        self.assertEqual(service.get_rate("INR"), Decimal("83.40"))

    def test_upstream_down_gives_up_after_retries(self):
        rate_source = MagicMock()
        rate_source.fetch_rates.side_effect = UpstreamUnavailable("down")
        rate_source.fallback_rates.return_value = {"INR": Decimal("83.12")}
        self._service(rate_source)

        with patch.object(
            refresh_exchange_rates_task, "retry", side_effect=refresh_exchange_rates_task.MaxRetriesExceededError()
        ):
            result = refresh_exchange_rates_task(cleanup=False)

        self.assertFalse(result["success"])
        self.assertIn("Max retries", result["error"])
        self.assertTrue(result["is_stale"])


class UpdateExchangeRatesCommandTest(TestCase):
    def tearDown(self):
        set_currency_service(None)

    def test_test_data_is_stored(self):
        out = StringIO()

        call_command("update_exchange_rates", "--test-data", stdout=out)

        self.assertIn("INR", ExchangeRate.objects.get_latest_rates("USD"))
        self.assertIn("Created", out.getvalue())

    @patch("payment_system.domain.services.exchange_rate_service.ExchangeRateService.fetch_rates")
    def test_fetched_rates_replace_snapshot(self, mock_fetch):
        mock_fetch.return_value = {"USD": Decimal("1"), "INR": Decimal("84.00")}
        set_currency_service(CurrencyConversionService.from_static_rates({"INR": Decimal("80.00")}))

        call_command("update_exchange_rates", "--force", stdout=StringIO())

        self.assertEqual(get_currency_service().get_rate("INR"), Decimal("84.00"))

    @patch("payment_system.domain.services.exchange_rate_service.ExchangeRateService.fetch_rates")
    def test_upstream_failure_raises(self, mock_fetch):
        mock_fetch.side_effect = UpstreamUnavailable("down")

        with self.assertRaises(CommandError):
            call_command("update_exchange_rates", "--force", stdout=StringIO())
