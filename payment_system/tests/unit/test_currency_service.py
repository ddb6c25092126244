from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from payment_system.domain.exceptions import AmountTooSmall, UnsupportedCurrency, UpstreamUnavailable
from payment_system.domain.services.currency_service import (
    SOURCE_API,
    SOURCE_DATABASE,
    SOURCE_FALLBACK,
    CurrencyConversionService,
    ExchangeRateSnapshot,
    quantize_amount,
    to_minor_units,
)
from payment_system.domain.services.exchange_rate_service import FALLBACK_RATES
from payment_system.models import ExchangeRate

RATES = {"INR": Decimal("83.00"), "EUR": Decimal("0.92"), "JPY": Decimal("149.50")}


def _rate_source(rates=None, error=None):
    source = MagicMock()
    if error is not None:
        source.fetch_rates.side_effect = error
    else:
        source.fetch_rates.return_value = dict(rates or RATES)
    source.fallback_rates.return_value = dict(FALLBACK_RATES)
    return source


@pytest.mark.unit
class TestMinorUnits:
    def test_two_decimal_currency(self):
        assert to_minor_units(Decimal("4150.00"), "INR") == 415000

    def test_zero_decimal_currency(self):
        assert to_minor_units(Decimal("150"), "JPY") == 150

    def test_three_decimal_currency(self):
        assert to_minor_units(Decimal("1.234"), "KWD") == 1234

    def test_rounds_half_up(self):
        assert quantize_amount(Decimal("0.005"), "INR") == Decimal("0.01")
        assert quantize_amount(Decimal("2.345"), "USD") == Decimal("2.35")
        assert quantize_amount(Decimal("99.5"), "JPY") == Decimal("100")


@pytest.mark.unit
class TestExchangeRateSnapshot:
    def test_base_is_always_one(self):
        snapshot = ExchangeRateSnapshot.build("usd", {"inr": "83.00"}, timezone.now(), SOURCE_API)

        assert snapshot.base_currency == "USD"
        assert snapshot.rates["USD"] == Decimal("1")
        assert snapshot.rates["INR"] == Decimal("83.00")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            ExchangeRateSnapshot.build("USD", {"INR": Decimal("-1")}, timezone.now(), SOURCE_API)

    def test_rates_are_read_only(self):
        snapshot = ExchangeRateSnapshot.build("USD", RATES, timezone.now(), SOURCE_API)

        with pytest.raises(TypeError):
            snapshot.rates["INR"] = Decimal("1")

    def test_unknown_currency(self):
        snapshot = ExchangeRateSnapshot.build("USD", RATES, timezone.now(), SOURCE_API)

        with pytest.raises(UnsupportedCurrency):
            snapshot.rate_for("XYZ")

    def test_marked_stale_keeps_rates(self):
        snapshot = ExchangeRateSnapshot.build("USD", RATES, timezone.now(), SOURCE_API)
        stale = snapshot.marked_stale()

        assert stale.is_stale is True
        assert snapshot.is_stale is False
        assert stale.rates is snapshot.rates


@pytest.mark.unit
class TestCurrencyConversion:
    def setup_method(self):
        self.service = CurrencyConversionService.from_static_rates(RATES)

    def test_usd_listing_settles_in_inr(self):
        settlement = self.service.to_settlement(Decimal("50.00"), "USD")

        assert settlement.amount == Decimal("4150.00")
        assert settlement.amount_minor == 415000
        assert settlement.currency == "INR"
        assert settlement.listing_amount == Decimal("50.00")
        assert settlement.listing_currency == "USD"
        assert settlement.exchange_rate == Decimal("83.00")
        assert settlement.rate_is_stale is False

    def test_settlement_currency_listing_is_identity(self):
        settlement = self.service.to_settlement(Decimal("499.00"), "inr")

        assert settlement.amount == Decimal("499.00")
        assert settlement.amount_minor == 49900
        assert settlement.exchange_rate == Decimal("1")
        assert settlement.rate_source == "identity"

    def test_same_currency_convert_untouched(self):
        assert self.service.convert(Decimal("12.345"), "EUR", "EUR") == Decimal("12.345")

    def test_cross_rate_through_base(self):
        # EUR -> INR goes through USD: 83.00 / 0.92
        assert self.service.convert(Decimal("10.00"), "EUR", "INR") == Decimal("902.17")

    def test_conversion_is_monotonic(self):
        amounts = [Decimal("0.10"), Decimal("1.00"), Decimal("1.01"), Decimal("49.99"), Decimal("50.00"), Decimal("999")]
        converted = [self.service.convert(a, "USD", "INR") for a in amounts]

        assert converted == sorted(converted)

    def test_amount_below_gateway_minimum(self):
        # 0.01 USD -> 0.83 INR -> 83 paise, below 100
        with pytest.raises(AmountTooSmall) as exc:
            self.service.to_settlement(Decimal("0.01"), "USD")

        assert exc.value.amount_minor == 83
        assert exc.value.minimum_minor == 100

    def test_unsupported_listing_currency(self):
        with pytest.raises(UnsupportedCurrency):
            self.service.to_settlement(Decimal("10"), "XYZ")

    def test_static_service_never_refreshes(self):
        old = ExchangeRateSnapshot.build("USD", RATES, timezone.now() - timedelta(days=3), SOURCE_API)
        self.service.replace_snapshot(old)

        assert self.service.get_snapshot() is old

    def test_snapshot_status(self):
        status = self.service.snapshot_status()

        assert status["base_currency"] == "USD"
        assert status["settlement_currency"] == "INR"
        assert "INR" in status["currencies"]
        assert status["is_stale"] is False


@pytest.mark.unit
class TestSnapshotLifecycle:
    def _service(self, rate_source, **kwargs):
        kwargs.setdefault("max_age_seconds", 3600)
        kwargs.setdefault("background_refresh", False)
        return CurrencyConversionService(
            settlement_currency="INR", base_currency="USD", rate_source=rate_source, **kwargs
        )

    @patch.object(CurrencyConversionService, "_load_stored", return_value=None)
    def test_initial_load_from_upstream(self, _stored):
        source = _rate_source()
        service = self._service(source)

        snapshot = service.get_snapshot()

        assert snapshot.source == SOURCE_API
        assert snapshot.is_stale is False
        source.store_rates.assert_called_once()

    @patch.object(CurrencyConversionService, "_load_stored", return_value=None)
    def test_initial_load_falls_back_to_bundled_table(self, _stored):
        service = self._service(_rate_source(error=UpstreamUnavailable("down")))

        settlement = service.to_settlement(Decimal("50.00"), "USD")

        assert settlement.rate_source == SOURCE_FALLBACK
        assert settlement.rate_is_stale is True
        assert settlement.amount == Decimal("4156.00")

    def test_initial_load_serves_stored_batch_when_upstream_down(self):
        stored = ExchangeRateSnapshot.build("USD", {"INR": Decimal("82.50")}, timezone.now(), SOURCE_DATABASE)
        service = self._service(_rate_source(error=UpstreamUnavailable("down")))

        with patch.object(CurrencyConversionService, "_load_stored", return_value=stored.marked_stale()):
            snapshot = service.get_snapshot()

        assert snapshot.source == SOURCE_DATABASE
        assert snapshot.is_stale is True
        assert snapshot.rates["INR"] == Decimal("82.50")

    def test_fresh_stored_batch_skips_upstream(self):
        stored = ExchangeRateSnapshot.build("USD", {"INR": Decimal("82.50")}, timezone.now(), SOURCE_DATABASE)
        source = _rate_source()
        service = self._service(source)

        with patch.object(CurrencyConversionService, "_load_stored", return_value=stored):
            assert service.get_snapshot() is stored

        source.fetch_rates.assert_not_called()

    @patch.object(CurrencyConversionService, "_load_stored", return_value=None)
    def test_first_conversion_serves_fallback_while_upstream_loads_in_background(self, _stored):
        source = _rate_source()
        service = self._service(source, background_refresh=True)

        with patch.object(CurrencyConversionService, "_refresh_in_background") as mock_refresh:
            settlement = service.to_settlement(Decimal("50.00"), "USD")

        assert settlement.rate_source == SOURCE_FALLBACK
        assert settlement.rate_is_stale is True
        assert settlement.amount == Decimal("4156.00")
        source.fetch_rates.assert_not_called()
        mock_refresh.assert_called_once()

    @patch.object(CurrencyConversionService, "_load_stored", return_value=None)
    def test_inline_initial_fetch_does_not_hold_the_lock(self, _stored):
        source = _rate_source()
        service = self._service(source)
        lock_held = []

        def fetch(base_currency):
            lock_held.append(service._lock.locked())
            return dict(RATES)

        source.fetch_rates.side_effect = fetch

        assert service.get_snapshot().source == SOURCE_API
        assert lock_held == [False]

    def test_expired_snapshot_refreshed_inline(self):
        source = _rate_source({"INR": Decimal("84.00")})
        service = self._service(source)
        service.replace_snapshot(
            ExchangeRateSnapshot.build("USD", RATES, timezone.now() - timedelta(hours=2), SOURCE_API)
        )

        snapshot = service.get_snapshot()

        assert snapshot.rates["INR"] == Decimal("84.00")
        assert snapshot.is_stale is False

    def test_expired_snapshot_served_stale_during_background_refresh(self):
        service = self._service(_rate_source(), background_refresh=True)
        old = ExchangeRateSnapshot.build("USD", RATES, timezone.now() - timedelta(hours=2), SOURCE_API)
        service.replace_snapshot(old)

        with patch.object(CurrencyConversionService, "_refresh_in_background") as mock_refresh:
            snapshot = service.get_snapshot()

        mock_refresh.assert_called_once()
        assert snapshot.is_stale is True
        assert snapshot.rates["INR"] == Decimal("83.00")

    def test_failed_refresh_keeps_current_snapshot(self):
        service = self._service(_rate_source(error=UpstreamUnavailable("down")))
        current = ExchangeRateSnapshot.build("USD", RATES, timezone.now(), SOURCE_API)
        service.replace_snapshot(current)

        assert service.refresh() is current

    def test_failed_refresh_marks_expired_snapshot_stale(self):
        service = self._service(_rate_source(error=UpstreamUnavailable("down")))
        service.replace_snapshot(
            ExchangeRateSnapshot.build("USD", RATES, timezone.now() - timedelta(hours=2), SOURCE_API)
        )

        snapshot = service.refresh()

        assert snapshot.is_stale is True
        assert snapshot.rates["INR"] == Decimal("83.00")

    def test_refresh_replaces_snapshot_wholesale(self):
        service = self._service(_rate_source({"INR": Decimal("84.00")}))
        before = ExchangeRateSnapshot.build("USD", RATES, timezone.now(), SOURCE_API)
        service.replace_snapshot(before)

        after = service.refresh()

        assert after is not before
        assert "EUR" not in after.rates
        assert before.rates["INR"] == Decimal("83.00")


@pytest.mark.django_db
class TestStoredRates:
    def test_load_stored_reads_latest_batch(self):
        ExchangeRate.bulk_create_rates("USD", {"INR": "80.00"}, batch_time=timezone.now() - timedelta(minutes=30))
        ExchangeRate.bulk_create_rates("USD", {"INR": "83.00", "EUR": "0.92"}, batch_time=timezone.now())
        service = CurrencyConversionService(base_currency="USD", rate_source=_rate_source())

        snapshot = service._load_stored()

        assert snapshot.source == SOURCE_DATABASE
        assert snapshot.rates["INR"] == Decimal("83.00")
        assert snapshot.is_stale is False

    def test_old_stored_batch_is_stale(self):
        ExchangeRate.bulk_create_rates("USD", {"INR": "80.00"}, batch_time=timezone.now() - timedelta(days=2))
        service = CurrencyConversionService(base_currency="USD", max_age_seconds=3600, rate_source=_rate_source())

        assert service._load_stored().is_stale is True
