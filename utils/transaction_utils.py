"""
Transaction Utilities for the Flipp Backend
===========================================

Retry helpers for short write transactions that can lose a lock race.

Usage Examples:
    # Function decorator
    @retry_on_deadlock(max_retries=5)
    def sell(order_id, product_id):
        with transaction.atomic():
            ...

The wrapped function must be safe to run again after a rollback. Conditional
updates (UPDATE ... WHERE status = ...) are; read-then-write code is not.
"""

import logging
import time
from functools import wraps

from django.db import OperationalError

logger = logging.getLogger(__name__)

# Messages the supported backends use for transient lock failures
TRANSIENT_LOCK_MARKERS = (
    "Deadlock found",  # MySQL
    "1213",  # MySQL deadlock error code
    "deadlock detected",  # PostgreSQL
    "could not serialize access",  # PostgreSQL serialization failure
    "database is locked",  # SQLite busy timeout exceeded
)


class TransactionError(Exception):
    """Custom exception for transaction-related errors"""

    pass


class DeadlockError(TransactionError):
    """Exception raised when a deadlock is detected"""

    pass


def is_transient_lock_error(error: Exception) -> bool:
    message = str(error)
    return any(marker in message for marker in TRANSIENT_LOCK_MARKERS)


def retry_on_deadlock(max_retries=3, delay=0.1, backoff=2.0):
    """
    Decorator to retry operations on deadlock with exponential backoff.

    Args:
        max_retries (int): Maximum number of retry attempts
        delay (float): Initial delay between retries in seconds
        backoff (float): Backoff multiplier for delay
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    if not is_transient_lock_error(e):
                        raise TransactionError(f"Database operation failed: {e}") from e
                    last_exception = DeadlockError(f"Deadlock detected: {e}")
                    if attempt < max_retries:
                        logger.warning(
                            f"Deadlock detected in {func.__name__}, retrying in {current_delay}s "
                            f"(attempt {attempt + 1}/{max_retries})"
                        )
                        time.sleep(current_delay)
                        current_delay *= backoff
                        continue

            # If we get here, we've exhausted all retries
            raise last_exception

        return wrapper

    return decorator
