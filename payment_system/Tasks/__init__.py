"""
Payment System Tasks Package

Celery task definitions for exchange-rate refresh and the unpaid checkout sweep.
"""

# Import tasks to ensure they are registered with Celery
from .exchange_rate_tasks import refresh_exchange_rates_task
from .payment_tasks import expire_stale_checkouts_task

__all__ = [
    # Payment tasks
    "expire_stale_checkouts_task",
    # Exchange rate tasks
    "refresh_exchange_rates_task",
]
