from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from django.utils import timezone

from payment_system.domain.exceptions import UpstreamUnavailable
from payment_system.domain.services.exchange_rate_service import FALLBACK_RATES, ExchangeRateService
from payment_system.models import ExchangeRate


@pytest.mark.unit
@patch("tenacity.nap.time.sleep")
class TestFetchRates:
    @patch("payment_system.domain.services.exchange_rate_service.requests.get")
    def test_fetch_rates_success(self, mock_get, _sleep):
        mock_response = MagicMock()
        mock_response.json.return_value = {"base": "USD", "rates": {"INR": 83.1, "EUR": "0.92"}}
        mock_get.return_value = mock_response

        rates = ExchangeRateService.fetch_rates("usd")

        assert rates == {"INR": Decimal("83.1"), "EUR": Decimal("0.92"), "USD": Decimal("1")}
        assert mock_get.call_args[0][0].endswith("/USD")

    @patch("payment_system.domain.services.exchange_rate_service.requests.get")
    def test_fetch_rates_skips_invalid_values(self, mock_get, _sleep):
        mock_response = MagicMock()
        mock_response.json.return_value = {"rates": {"INR": "83", "BAD": "n/a", "NEG": -2}}
        mock_get.return_value = mock_response

        rates = ExchangeRateService.fetch_rates("USD")

        assert "BAD" not in rates
        assert "NEG" not in rates
        assert rates["INR"] == Decimal("83")

    @patch("payment_system.domain.services.exchange_rate_service.requests.get")
    def test_fetch_rates_missing_rates(self, mock_get, _sleep):
        mock_response = MagicMock()
        mock_response.json.return_value = {"error": "bad api"}  # Missing 'rates'
        mock_get.return_value = mock_response

        with pytest.raises(UpstreamUnavailable):
            ExchangeRateService.fetch_rates("USD")

    @patch("payment_system.domain.services.exchange_rate_service.requests.get")
    def test_fetch_rates_network_error_retried(self, mock_get, _sleep):
        mock_get.side_effect = requests.ConnectionError("Network Error")

        with pytest.raises(UpstreamUnavailable):
            ExchangeRateService.fetch_rates("USD")

        assert mock_get.call_count == 3


@pytest.mark.unit
class TestFallbackRates:
    def test_usd_table(self):
        assert ExchangeRateService.fallback_rates("USD") == FALLBACK_RATES

    def test_rebased_table(self):
        rates = ExchangeRateService.fallback_rates("EUR")

        assert rates["EUR"] == Decimal("1")
        assert rates["USD"] == Decimal("1") / Decimal("0.92")

    def test_unknown_base(self):
        assert ExchangeRateService.fallback_rates("XYZ") == {}


@pytest.mark.unit
class TestUpdateExchangeRates:
    @patch("payment_system.models.ExchangeRate.objects")
    @patch("payment_system.domain.services.exchange_rate_service.ExchangeRateService.fetch_rates")
    @patch("payment_system.models.ExchangeRate.bulk_create_rates")
    def test_update_exchange_rates_fresh_skip(self, mock_bulk_create, mock_fetch, mock_objects):
        mock_objects.is_data_fresh.return_value = True

        result = ExchangeRateService.update_exchange_rates()

        assert result["success"] is True
        assert result["skipped"] is True
        mock_fetch.assert_not_called()
        mock_bulk_create.assert_not_called()

    @patch("payment_system.models.ExchangeRate.objects")
    @patch("payment_system.domain.services.exchange_rate_service.ExchangeRateService.fetch_rates")
    @patch("payment_system.models.ExchangeRate.bulk_create_rates")
    def test_update_exchange_rates_force(self, mock_bulk_create, mock_fetch, mock_objects):
        mock_objects.is_data_fresh.return_value = True
        mock_fetch.return_value = {"USD": Decimal("1"), "EUR": Decimal("0.85")}
        mock_bulk_create.return_value = 1

        result = ExchangeRateService.update_exchange_rates(force_update=True, cleanup_old=False)

        assert result["success"] is True
        assert result["created_count"] == 1
        assert result["source"] == "service_api"
        mock_fetch.assert_called_once()
        mock_bulk_create.assert_called_once()

    @patch("payment_system.models.ExchangeRate.objects")
    @patch("payment_system.domain.services.exchange_rate_service.ExchangeRateService.fetch_rates")
    def test_update_exchange_rates_fetch_fail(self, mock_fetch, mock_objects):
        mock_objects.is_data_fresh.return_value = False
        mock_fetch.side_effect = UpstreamUnavailable("down")

        result = ExchangeRateService.update_exchange_rates()

        assert result["success"] is False
        assert "down" in result["error"]

    @patch("payment_system.domain.services.exchange_rate_service.ExchangeRateService.fetch_rates")
    @patch("payment_system.models.ExchangeRate.bulk_create_rates")
    def test_update_with_test_data(self, mock_bulk_create, mock_fetch):
        mock_bulk_create.return_value = len(FALLBACK_RATES) - 1

        result = ExchangeRateService.update_exchange_rates(use_test_data=True, cleanup_old=False)

        assert result["success"] is True
        assert result["source"] == "service_fallback"
        mock_fetch.assert_not_called()


@pytest.mark.django_db
class TestStoredBatches:
    def test_cleanup_keeps_latest_batch(self):
        old = timezone.now() - timedelta(days=30)
        ExchangeRate.bulk_create_rates("USD", {"INR": "80", "EUR": "0.9"}, batch_time=old)
        ExchangeRate.bulk_create_rates("EUR", {"INR": "88"}, batch_time=old)
        ExchangeRate.bulk_create_rates("USD", {"INR": "83"}, batch_time=timezone.now())

        deleted = ExchangeRateService.cleanup_old_rates(keep_days=7)

        assert deleted == 2
        # EUR's only batch is old but still the newest for that base
        assert ExchangeRate.objects.filter(base_currency="EUR").count() == 1
        assert ExchangeRate.objects.get_latest_rates("USD")["INR"] == Decimal("83")

    def test_status_without_data(self):
        status = ExchangeRateService.get_exchange_rate_status("GBP")

        assert status["has_data"] is False
        assert status["status"] == "no_data"

    def test_status_fresh(self):
        ExchangeRate.bulk_create_rates("USD", {"INR": "83", "EUR": "0.92"}, source="service_api")

        status = ExchangeRateService.get_exchange_rate_status("USD")

        assert status["is_fresh"] is True
        assert status["total_rates"] == 2
        assert status["source"] == "service_api"

    def test_bulk_create_rejects_negative(self):
        with pytest.raises(ValueError):
            ExchangeRate.bulk_create_rates("USD", {"INR": "-1"})
