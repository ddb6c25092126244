"""
Django management command to refresh exchange rates from the shell.
Usage: python manage.py update_exchange_rates [--base-currency USD] [--force] [--cleanup]
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from payment_system.domain.services.currency_service import SOURCE_API, ExchangeRateSnapshot, get_currency_service
from payment_system.domain.services.exchange_rate_service import ExchangeRateService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Update exchange rates from the external API and store them in the database"

    def add_arguments(self, parser):
        parser.add_argument(
            "--base-currency",
            type=str,
            default=None,
            help="Base currency for exchange rates (default: EXCHANGE_RATE_BASE_CURRENCY)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Force update even if data is fresh",
        )
        parser.add_argument(
            "--cleanup",
            action="store_true",
            help="Clean up old exchange rate data after update",
        )
        parser.add_argument(
            "--test-data",
            action="store_true",
            help="Store the bundled fallback table instead of fetching from the API",
        )

    def handle(self, *args, **options):
        base_currency = (options["base_currency"] or ExchangeRateService.default_base_currency()).upper()

        self.stdout.write(self.style.SUCCESS(f"🔄 Starting exchange rate update for {base_currency}"))

        result = ExchangeRateService.update_exchange_rates(
            base_currency=base_currency,
            force_update=options["force"],
            cleanup_old=options["cleanup"],
            source="management_command",
            use_test_data=options["test_data"],
        )

        if not result["success"]:
            raise CommandError(f"❌ {result['error']}")

        if result.get("skipped"):
            self.stdout.write(
                self.style.WARNING("⏭️  Exchange rate data is fresh, skipping update. Use --force to override.")
            )
            return

        service = get_currency_service()
        if service.base_currency == base_currency and not options["test_data"]:
            service.replace_snapshot(
                ExchangeRateSnapshot.build(base_currency, result["rates"], result["fetched_at"], SOURCE_API)
            )

        self.stdout.write(
            self.style.SUCCESS(f"✅ Created {result['created_count']} exchange rates for {base_currency}")
        )
        for currency in sorted(result["rates"]):
            self.stdout.write(f"   {base_currency} → {currency}: {result['rates'][currency]}")
