import logging
from decimal import Decimal

from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)


class ExchangeRateManager(models.Manager):
    """Custom manager for ExchangeRate model."""

    def get_latest_batch(self, base_currency="USD"):
        """
        Get the most recent complete batch of rates for a base currency.

        Every row of a batch shares the exact created_at written by
        bulk_create_rates, so a batch is never mixed with an older one.

        Args:
            base_currency (str): Base currency code (default: USD)

        Returns:
            tuple or None: (rates dict of Decimal, fetched_at, source), or None if nothing stored
        """
        base_upper = base_currency.upper()
        latest = self.filter(base_currency=base_upper, is_active=True).order_by("-created_at").first()
        if latest is None:
            logger.debug(f"[FX] No stored rates for {base_upper}")
            return None

        rows = self.filter(base_currency=base_upper, is_active=True, created_at=latest.created_at).values(
            "target_currency", "rate"
        )
        rates = {row["target_currency"]: Decimal(row["rate"]) for row in rows}
        rates[base_upper] = Decimal("1")

        logger.debug(f"[FX] Loaded {len(rates)} stored rates for {base_upper} from {latest.created_at}")
        return rates, latest.created_at, latest.source

    def get_latest_rates(self, base_currency="USD"):
        """
        Get the latest exchange rates for a base currency.

        Returns:
            dict: Dictionary of currency codes to Decimal rates (empty if none stored)
        """
        batch = self.get_latest_batch(base_currency)
        return batch[0] if batch else {}

    def is_data_fresh(self, max_age_seconds=3600, base_currency="USD"):
        """
        Check if the newest stored batch is younger than max_age_seconds.

        Returns:
            bool: True if data is fresh, False otherwise
        """
        latest = self.filter(base_currency=base_currency.upper(), is_active=True).order_by("-created_at").first()
        if not latest:
            return False
        return (timezone.now() - latest.created_at).total_seconds() < max_age_seconds


class ExchangeRate(models.Model):
    """
    Model for storing currency exchange rates.

    One row per base/target pair per fetch. Rows written together form a batch
    and are always read together, so a stored table is replaced wholesale.
    """

    base_currency = models.CharField(max_length=3, help_text="Base currency code (e.g., USD)")

    target_currency = models.CharField(max_length=3, help_text="Target currency code (e.g., INR, EUR)")

    rate = models.DecimalField(max_digits=20, decimal_places=8, help_text="Units of target per one unit of base")

    created_at = models.DateTimeField(default=timezone.now, help_text="Fetch time shared by the whole batch")

    updated_at = models.DateTimeField(auto_now=True, help_text="When this rate was last updated")

    source = models.CharField(max_length=100, default="manual", help_text="Source of this exchange rate data")

    is_active = models.BooleanField(default=True, help_text="Whether this rate is currently active")

    # Custom manager
    objects = ExchangeRateManager()

    class Meta:
        db_table = "payment_exchange_rates"
        verbose_name = "Exchange Rate"
        verbose_name_plural = "Exchange Rates"

        # Ensure uniqueness per base/target/timestamp combination
        unique_together = ["base_currency", "target_currency", "created_at"]

        indexes = [
            models.Index(fields=["base_currency", "target_currency", "-created_at"], name="fx_pair_created_idx"),
            models.Index(fields=["base_currency", "-created_at"], name="fx_base_created_idx"),
            models.Index(fields=["created_at"], name="fx_created_idx"),
        ]

        ordering = ["-created_at", "base_currency", "target_currency"]

    def __str__(self):
        return f"{self.base_currency}/{self.target_currency}: {self.rate} ({self.created_at.date()})"

    def save(self, *args, **kwargs):
        """Override save to ensure currency codes are uppercase."""
        self.base_currency = self.base_currency.upper()
        self.target_currency = self.target_currency.upper()
        super().save(*args, **kwargs)

    @property
    def age_hours(self):
        """Get the age of this rate in hours."""
        return (timezone.now() - self.created_at).total_seconds() / 3600

    @classmethod
    def bulk_create_rates(cls, base_currency, rates_dict, source="api", batch_time=None):
        """
        Bulk create exchange rates for a base currency as one batch.

        Args:
            base_currency (str): Base currency code
            rates_dict (dict): Dictionary of target_currency -> rate
            source (str): Source of the data
            batch_time (datetime): Fetch time for the batch (default: now)

        Returns:
            int: Number of rates created

        Raises:
            ValueError: If any rate is negative
        """
        batch_time = batch_time or timezone.now()
        base_upper = base_currency.upper()

        rate_objects = []
        for target_currency, rate in rates_dict.items():
            rate_value = Decimal(str(rate))
            if rate_value < 0:
                raise ValueError(f"Negative exchange rate for {target_currency}: {rate}")
            if target_currency.upper() == base_upper:  # Skip self-rates
                continue
            rate_objects.append(
                cls(
                    base_currency=base_upper,
                    target_currency=target_currency.upper(),
                    rate=rate_value,
                    created_at=batch_time,
                    source=source,
                )
            )

        created_rates = cls.objects.bulk_create(rate_objects, ignore_conflicts=True)
        return len(created_rates)
