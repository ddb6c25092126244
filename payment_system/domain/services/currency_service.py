"""
Currency Conversion Service

Holds one process-wide exchange-rate snapshot against a single base currency
and converts listing prices into the settlement currency.

Snapshot lifecycle:
    - loaded on first use from a fresh stored batch; otherwise the last
      stored batch or the bundled fallback table is served (stale) while
      upstream is fetched, without the network call holding the lock
    - replaced wholesale by refresh(); never patched in place
    - when older than EXCHANGE_RATE_REFRESH_SECONDS it is still served, marked
      stale, while a refresh runs on a background thread (or inline when
      background refresh is disabled)

Conversion never fails for lack of an upstream; the snapshot's source and
is_stale flag make any degradation visible on the priced Order.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from django.conf import settings
from django.utils import timezone

from marketplace.services.base import BaseService
from payment_system.domain.exceptions import AmountTooSmall, UnsupportedCurrency, UpstreamUnavailable
from payment_system.domain.services.exchange_rate_service import ExchangeRateService
from payment_system.infra.observability.metrics import exchange_rate_snapshot_loads

logger = logging.getLogger(__name__)

SOURCE_API = "api"
SOURCE_DATABASE = "database"
SOURCE_FALLBACK = "fallback"
SOURCE_STATIC = "static"

# ISO 4217 minor-unit exponents that differ from the usual 2
MINOR_UNIT_EXPONENTS = {
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "ISK": 0,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "PYG": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
}


def minor_unit_exponent(currency: str) -> int:
    return MINOR_UNIT_EXPONENTS.get(currency.upper(), 2)


def quantize_amount(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's minor-unit precision."""
    exponent = minor_unit_exponent(currency)
    return Decimal(amount).quantize(Decimal(1).scaleb(-exponent), rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Express an amount in the currency's smallest unit (paise, cents, yen)."""
    exponent = minor_unit_exponent(currency)
    return int(quantize_amount(amount, currency).scaleb(exponent))


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    """
    Immutable rate table.

    rates maps currency code to units of that currency per one base unit;
    the base currency is always present with rate 1.
    """

    base_currency: str
    rates: Mapping[str, Decimal]
    fetched_at: datetime
    source: str
    is_stale: bool = False

    @classmethod
    def build(cls, base_currency: str, rates: Dict[str, Decimal], fetched_at: datetime, source: str, is_stale=False):
        base_upper = base_currency.upper()
        table = {code.upper(): Decimal(rate) for code, rate in rates.items()}
        for code, rate in table.items():
            if rate < 0:
                raise ValueError(f"Negative exchange rate for {code}: {rate}")
        table[base_upper] = Decimal("1")
        return cls(
            base_currency=base_upper,
            rates=MappingProxyType(table),
            fetched_at=fetched_at,
            source=source,
            is_stale=is_stale,
        )

    def rate_for(self, currency: str) -> Decimal:
        rate = self.rates.get(currency.upper())
        if not rate:
            raise UnsupportedCurrency(currency.upper())
        return rate

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or timezone.now()) - self.fetched_at).total_seconds()

    def marked_stale(self) -> "ExchangeRateSnapshot":
        return self if self.is_stale else replace(self, is_stale=True)

    def as_dict(self) -> Dict:
        return {
            "base_currency": self.base_currency,
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source,
            "is_stale": self.is_stale,
            "currencies": sorted(self.rates.keys()),
        }


@dataclass(frozen=True)
class SettlementAmount:
    """A listing price converted to the settlement currency, with the rate that produced it."""

    amount: Decimal
    amount_minor: int
    currency: str
    listing_amount: Decimal
    listing_currency: str
    exchange_rate: Decimal
    rate_source: str
    rate_is_stale: bool


class CurrencyConversionService(BaseService):
    """
    Converts amounts between currencies using one shared snapshot.

    Usage:
        service = get_currency_service()
        settlement = service.to_settlement(Decimal("50.00"), "USD")
        settlement.amount_minor  # 415000 with INR at 83.00

    Tests can inject a deterministic table:
        service = CurrencyConversionService.from_static_rates({"INR": Decimal("83.00")})
    """

    def __init__(
        self,
        settlement_currency: Optional[str] = None,
        base_currency: Optional[str] = None,
        max_age_seconds: Optional[int] = None,
        background_refresh: Optional[bool] = None,
        minimum_amount_minor: Optional[int] = None,
        rate_source=ExchangeRateService,
    ):
        super().__init__()
        self.settlement_currency = (settlement_currency or getattr(settings, "SETTLEMENT_CURRENCY", "INR")).upper()
        self.base_currency = (base_currency or getattr(settings, "EXCHANGE_RATE_BASE_CURRENCY", "USD")).upper()
        self.max_age_seconds = (
            max_age_seconds
            if max_age_seconds is not None
            else int(getattr(settings, "EXCHANGE_RATE_REFRESH_SECONDS", 3600))
        )
        self.background_refresh = (
            background_refresh
            if background_refresh is not None
            else getattr(settings, "EXCHANGE_RATE_BACKGROUND_REFRESH", True)
        )
        self.minimum_amount_minor = (
            minimum_amount_minor
            if minimum_amount_minor is not None
            else int(getattr(settings, "PAYMENT_MINIMUM_AMOUNT_MINOR", 100))
        )
        self.rate_source = rate_source
        self.auto_refresh = True

        self._snapshot: Optional[ExchangeRateSnapshot] = None
        self._lock = threading.Lock()
        self._refresh_thread: Optional[threading.Thread] = None

    @classmethod
    def from_static_rates(
        cls,
        rates: Dict[str, Decimal],
        base_currency: str = "USD",
        settlement_currency: str = "INR",
        minimum_amount_minor: int = 100,
    ) -> "CurrencyConversionService":
        """Service pinned to a fixed table. Never refreshes."""
        service = cls(
            settlement_currency=settlement_currency,
            base_currency=base_currency,
            background_refresh=False,
            minimum_amount_minor=minimum_amount_minor,
        )
        service.auto_refresh = False
        service._snapshot = ExchangeRateSnapshot.build(base_currency, rates, timezone.now(), SOURCE_STATIC)
        return service

    # ------------------------------------------------------------------
    # Snapshot lifecycle
    # ------------------------------------------------------------------

    def get_snapshot(self) -> ExchangeRateSnapshot:
        """
        Return the current snapshot, loading it on first use.

        An expired snapshot is returned marked stale while a refresh runs.
        """
        snapshot = self._snapshot
        if snapshot is None:
            return self._load_initial()

        if not self.auto_refresh or snapshot.age_seconds() < self.max_age_seconds:
            return snapshot

        if self.background_refresh:
            self._refresh_in_background()
            return snapshot.marked_stale()

        return self.refresh()

    def refresh(self) -> ExchangeRateSnapshot:
        """
        Fetch a new table from upstream and replace the snapshot wholesale.

        On upstream failure the current snapshot stays in place (marked stale
        once expired); never raises for an unreachable source.
        """
        try:
            rates = self.rate_source.fetch_rates(self.base_currency)
        except UpstreamUnavailable as e:
            self.logger.warning(f"[FX] Refresh failed, keeping current rates: {e}")
            with self._lock:
                if self._snapshot is None:
                    self._snapshot = self._load_without_upstream()
                elif self._snapshot.age_seconds() >= self.max_age_seconds:
                    self._snapshot = self._snapshot.marked_stale()
                return self._snapshot

        snapshot = ExchangeRateSnapshot.build(self.base_currency, rates, timezone.now(), SOURCE_API)
        self._persist(snapshot)
        with self._lock:
            self._snapshot = snapshot
        exchange_rate_snapshot_loads.labels(source=SOURCE_API).inc()
        self.logger.info(f"[FX] Snapshot refreshed from upstream ({len(snapshot.rates)} currencies)")
        return snapshot

    def replace_snapshot(self, snapshot: ExchangeRateSnapshot) -> None:
        """Install a snapshot built elsewhere (periodic task, tests)."""
        with self._lock:
            self._snapshot = snapshot

    def snapshot_status(self) -> Dict:
        snapshot = self.get_snapshot()
        status = snapshot.as_dict()
        status["age_seconds"] = round(snapshot.age_seconds(), 1)
        status["settlement_currency"] = self.settlement_currency
        return status

    def _load_initial(self) -> ExchangeRateSnapshot:
        stored = self._load_stored()
        with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            if stored is not None and not stored.is_stale:
                exchange_rate_snapshot_loads.labels(source=SOURCE_DATABASE).inc()
                self._snapshot = stored
                return stored
            self._snapshot = self._load_without_upstream(stored)
            snapshot = self._snapshot

        if not self.auto_refresh:
            return snapshot
        if self.background_refresh:
            self._refresh_in_background()
            return snapshot
        return self.refresh()

    def _load_without_upstream(self, stored: Optional[ExchangeRateSnapshot] = None) -> ExchangeRateSnapshot:
        stored = stored or self._load_stored()
        if stored is not None:
            self.logger.warning(f"[FX] Serving stored rates from {stored.fetched_at.isoformat()} (stale)")
            exchange_rate_snapshot_loads.labels(source=SOURCE_DATABASE).inc()
            return stored.marked_stale()

        self.logger.warning("[FX] No stored rates, serving bundled fallback table")
        exchange_rate_snapshot_loads.labels(source=SOURCE_FALLBACK).inc()
        return ExchangeRateSnapshot.build(
            self.base_currency,
            self.rate_source.fallback_rates(self.base_currency),
            timezone.now(),
            SOURCE_FALLBACK,
            is_stale=True,
        )

    def _load_stored(self) -> Optional[ExchangeRateSnapshot]:
        from payment_system.models import ExchangeRate

        try:
            batch = ExchangeRate.objects.get_latest_batch(self.base_currency)
        except Exception as e:
            self.logger.error(f"[FX] Could not read stored rates: {e}")
            return None
        if batch is None:
            return None

        rates, fetched_at, _source = batch
        snapshot = ExchangeRateSnapshot.build(self.base_currency, rates, fetched_at, SOURCE_DATABASE)
        if snapshot.age_seconds() >= self.max_age_seconds:
            return snapshot.marked_stale()
        return snapshot

    def _persist(self, snapshot: ExchangeRateSnapshot) -> None:
        try:
            self.rate_source.store_rates(
                snapshot.base_currency, dict(snapshot.rates), "service_api", batch_time=snapshot.fetched_at
            )
        except Exception as e:
            self.logger.error(f"[FX] Failed to persist refreshed rates: {e}")

    def _refresh_in_background(self) -> None:
        with self._lock:
            if self._refresh_thread is not None and self._refresh_thread.is_alive():
                return
            self._refresh_thread = threading.Thread(target=self._background_refresh, daemon=True)
            self._refresh_thread.start()

    def _background_refresh(self) -> None:
        from django.db import connection

        try:
            self.refresh()
        except Exception as e:
            self.logger.error(f"[FX] Background refresh crashed: {e}", exc_info=True)
        finally:
            connection.close()

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def get_rate(self, currency: str) -> Decimal:
        """Units of currency per one unit of the base currency."""
        return self.get_snapshot().rate_for(currency)

    def cross_rate(self, from_currency: str, to_currency: str, snapshot: Optional[ExchangeRateSnapshot] = None):
        snapshot = snapshot or self.get_snapshot()
        return snapshot.rate_for(to_currency) / snapshot.rate_for(from_currency)

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """
        Convert amount between currencies.

        Same-currency conversion returns amount untouched. Otherwise the result
        is rounded half-up to the target currency's minor unit.

        Raises:
            UnsupportedCurrency: If either currency has no known rate
        """
        amount = Decimal(amount)
        if from_currency.upper() == to_currency.upper():
            return amount
        return quantize_amount(amount * self.cross_rate(from_currency, to_currency), to_currency)

    def to_settlement(self, amount: Decimal, currency: str) -> SettlementAmount:
        """
        Convert a listing price into the settlement currency.

        Raises:
            UnsupportedCurrency: If the listing currency has no known rate
            AmountTooSmall: If the result is below the gateway minimum
        """
        amount = Decimal(amount)
        listing_currency = currency.upper()

        if listing_currency == self.settlement_currency:
            snapshot = None
            rate = Decimal("1")
            settled = quantize_amount(amount, self.settlement_currency)
        else:
            snapshot = self.get_snapshot()
            rate = self.cross_rate(listing_currency, self.settlement_currency, snapshot)
            settled = quantize_amount(amount * rate, self.settlement_currency)

        amount_minor = to_minor_units(settled, self.settlement_currency)
        if amount_minor < self.minimum_amount_minor:
            raise AmountTooSmall(amount_minor, self.minimum_amount_minor, self.settlement_currency)

        return SettlementAmount(
            amount=settled,
            amount_minor=amount_minor,
            currency=self.settlement_currency,
            listing_amount=amount,
            listing_currency=listing_currency,
            exchange_rate=rate,
            rate_source=snapshot.source if snapshot else "identity",
            rate_is_stale=snapshot.is_stale if snapshot else False,
        )


_currency_service: Optional[CurrencyConversionService] = None
_currency_service_lock = threading.Lock()


def get_currency_service() -> CurrencyConversionService:
    """Process-wide CurrencyConversionService."""
    global _currency_service
    if _currency_service is None:
        with _currency_service_lock:
            if _currency_service is None:
                _currency_service = CurrencyConversionService()
    return _currency_service


def set_currency_service(service: Optional[CurrencyConversionService]) -> None:
    """Swap the process-wide service (tests, or None to rebuild from settings)."""
    global _currency_service
    with _currency_service_lock:
        _currency_service = service
