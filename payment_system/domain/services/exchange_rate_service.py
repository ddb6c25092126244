"""
Exchange Rate Service

Fetches exchange-rate tables from the upstream source and persists them as
batches. Used by the in-process CurrencyConversionService, the periodic Celery
refresh and the update_exchange_rates management command.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

import requests
from django.conf import settings
from django.utils import timezone
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from payment_system.domain.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Last-known-good table bundled with the service, units per 1 USD.
FALLBACK_BASE_CURRENCY = "USD"
FALLBACK_RATES = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "CAD": Decimal("1.36"),
    "AUD": Decimal("1.52"),
    "INR": Decimal("83.12"),
    "JPY": Decimal("149.50"),
    "CNY": Decimal("7.24"),
    "BRL": Decimal("4.97"),
    "MXN": Decimal("17.08"),
    "AED": Decimal("3.67"),
    "SGD": Decimal("1.34"),
    "HKD": Decimal("7.83"),
    "KRW": Decimal("1319.50"),
    "ZAR": Decimal("18.65"),
}


class ExchangeRateService:
    """
    Service for fetching and storing exchange rates.
    """

    DEFAULT_API_URL = "https://api.exchangerate-api.com/v4/latest/"

    @classmethod
    def api_url(cls) -> str:
        url = getattr(settings, "EXCHANGE_RATE_API_URL", cls.DEFAULT_API_URL)
        return url if url.endswith("/") else url + "/"

    @classmethod
    def max_age_seconds(cls) -> int:
        return int(getattr(settings, "EXCHANGE_RATE_REFRESH_SECONDS", 3600))

    @classmethod
    def default_base_currency(cls) -> str:
        return getattr(settings, "EXCHANGE_RATE_BASE_CURRENCY", "USD").upper()

    @classmethod
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(UpstreamUnavailable),
        reraise=True,
    )
    def fetch_rates(cls, base_currency: Optional[str] = None) -> Dict[str, Decimal]:
        """
        Fetch a full rate table from the upstream API.

        Args:
            base_currency (str): Base currency code

        Returns:
            dict: currency code -> Decimal units per one base unit, base included as 1

        Raises:
            UpstreamUnavailable: Network failure, bad status, or malformed payload
        """
        base_upper = (base_currency or cls.default_base_currency()).upper()
        url = f"{cls.api_url()}{base_upper}"
        logger.debug(f"[FX] Fetching rates from: {url}")

        try:
            response = requests.get(url, timeout=30)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"[FX] Network error fetching exchange rates: {e}")
            raise UpstreamUnavailable(f"Exchange rate source unreachable: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"Exchange rate source returned invalid JSON: {e}") from e

        raw_rates = data.get("rates") if isinstance(data, dict) else None
        if not raw_rates:
            logger.error("[FX] Invalid response format from exchange rate API")
            raise UpstreamUnavailable("Exchange rate source returned no rates")

        rates = cls._parse_rates(raw_rates)
        rates[base_upper] = Decimal("1")
        logger.info(f"[FX] Fetched {len(rates)} exchange rates for {base_upper}")
        return rates

    @staticmethod
    def _parse_rates(raw_rates: Dict) -> Dict[str, Decimal]:
        rates = {}
        for code, value in raw_rates.items():
            try:
                rate = Decimal(str(value))
            except InvalidOperation:
                logger.warning(f"[FX] Skipping unparseable rate for {code}: {value!r}")
                continue
            if rate < 0 or not rate.is_finite():
                logger.warning(f"[FX] Skipping invalid rate for {code}: {value!r}")
                continue
            rates[str(code).upper()] = rate
        return rates

    @classmethod
    def fallback_rates(cls, base_currency: Optional[str] = None) -> Dict[str, Decimal]:
        """
        The bundled last-known-good table, rebased onto base_currency.

        Returns:
            dict: currency code -> Decimal; empty if base_currency is not in the table
        """
        base_upper = (base_currency or cls.default_base_currency()).upper()
        if base_upper == FALLBACK_BASE_CURRENCY:
            return dict(FALLBACK_RATES)

        base_rate = FALLBACK_RATES.get(base_upper)
        if not base_rate:
            return {}
        return {code: rate / base_rate for code, rate in FALLBACK_RATES.items()}

    @classmethod
    def store_rates(cls, base_currency: str, rates: Dict[str, Decimal], source: str, batch_time=None) -> int:
        from payment_system.models import ExchangeRate

        return ExchangeRate.bulk_create_rates(
            base_currency=base_currency, rates_dict=rates, source=source, batch_time=batch_time
        )

    @classmethod
    def update_exchange_rates(
        cls,
        base_currency: Optional[str] = None,
        force_update: bool = False,
        cleanup_old: bool = True,
        source: str = "service",
        use_test_data: bool = False,
    ) -> Dict:
        """
        Update exchange rates from the external API or the bundled table.

        Args:
            base_currency (str): Base currency for exchange rates
            force_update (bool): Force update even if data is fresh
            cleanup_old (bool): Clean up old exchange rate data
            source (str): Source identifier for this update
            use_test_data (bool): Store the bundled table instead of calling the API

        Returns:
            dict: Result with success status, created count, rates and any errors
        """
        from payment_system.models import ExchangeRate

        base_upper = (base_currency or cls.default_base_currency()).upper()
        logger.info(f"[FX] Starting exchange rate update for {base_upper} (source: {source})")

        if not force_update and not use_test_data:
            if ExchangeRate.objects.is_data_fresh(cls.max_age_seconds(), base_upper):
                logger.info("[FX] Exchange rate data is fresh, skipping update")
                return {
                    "success": True,
                    "created_count": 0,
                    "message": "Data is fresh, no update needed",
                    "skipped": True,
                }

        try:
            if use_test_data:
                rates = cls.fallback_rates(base_upper)
                data_source = f"{source}_fallback"
            else:
                rates = cls.fetch_rates(base_upper)
                data_source = f"{source}_api"
        except UpstreamUnavailable as e:
            error_msg = f"Exchange rate update failed: {str(e)}"
            logger.error(f"[FX] {error_msg}")
            return {"success": False, "created_count": 0, "error": error_msg}

        if not rates:
            error_msg = f"No exchange rate data available for {base_upper}"
            logger.error(f"[FX] {error_msg}")
            return {"success": False, "created_count": 0, "error": error_msg}

        fetched_at = timezone.now()
        created_count = cls.store_rates(base_upper, rates, data_source, batch_time=fetched_at)
        logger.info(f"[FX] Created {created_count} exchange rates for {base_upper}")

        if cleanup_old:
            deleted_count = cls.cleanup_old_rates()
            logger.info(f"[FX] Cleaned up {deleted_count} old exchange rate records")

        return {
            "success": True,
            "created_count": created_count,
            "base_currency": base_upper,
            "source": data_source,
            "rates": rates,
            "fetched_at": fetched_at,
            "message": f"Successfully updated {created_count} exchange rates",
        }

    @classmethod
    def cleanup_old_rates(cls, keep_days: Optional[int] = None) -> int:
        """
        Clean up old exchange rate data. The newest batch per base is always kept.

        Args:
            keep_days (int): Number of days to keep

        Returns:
            int: Number of records deleted
        """
        from payment_system.models import ExchangeRate

        keep_days = keep_days if keep_days is not None else int(getattr(settings, "EXCHANGE_RATE_KEEP_DAYS", 7))
        cutoff_date = timezone.now() - timezone.timedelta(days=keep_days)

        deleted_count = 0
        bases = ExchangeRate.objects.order_by().values_list("base_currency", flat=True).distinct()
        for base in list(bases):
            latest = ExchangeRate.objects.filter(base_currency=base).order_by("-created_at").first()
            deleted_count += (
                ExchangeRate.objects.filter(base_currency=base, created_at__lt=cutoff_date)
                .exclude(created_at=latest.created_at)
                .delete()[0]
            )
        return deleted_count

    @classmethod
    def get_exchange_rate_status(cls, base_currency: Optional[str] = None) -> Dict:
        """
        Get current status of stored exchange rate data.

        Returns:
            dict: Status information including freshness and last update
        """
        from payment_system.models import ExchangeRate

        base_upper = (base_currency or cls.default_base_currency()).upper()
        latest_rate = ExchangeRate.objects.filter(base_currency=base_upper).order_by("-created_at").first()

        if not latest_rate:
            return {
                "has_data": False,
                "is_fresh": False,
                "last_updated": None,
                "age_hours": None,
                "total_rates": 0,
                "source": None,
                "status": "no_data",
            }

        age_seconds = (timezone.now() - latest_rate.created_at).total_seconds()
        is_fresh = age_seconds < cls.max_age_seconds()
        total_rates = ExchangeRate.objects.filter(
            base_currency=base_upper, created_at=latest_rate.created_at
        ).count()

        return {
            "has_data": True,
            "is_fresh": is_fresh,
            "last_updated": latest_rate.created_at.isoformat(),
            "age_hours": round(age_seconds / 3600, 2),
            "total_rates": total_rates,
            "source": latest_rate.source,
            "status": "fresh" if is_fresh else "stale",
        }

    @classmethod
    def force_update_if_stale(cls, base_currency: Optional[str] = None) -> Dict:
        """
        Update exchange rates only if stored data is missing or stale.

        Returns:
            dict: Update result
        """
        status = cls.get_exchange_rate_status(base_currency)

        if not status["is_fresh"]:
            logger.info(f"[FX] Data is stale (age: {status.get('age_hours', 'unknown')}h), forcing update")
            return cls.update_exchange_rates(base_currency, force_update=True, source="auto_stale_check")

        logger.info(f"[FX] Data is fresh (age: {status['age_hours']}h), no update needed")
        return {
            "success": True,
            "created_count": 0,
            "message": "Data is fresh, no update needed",
            "skipped": True,
            "status": status,
        }
