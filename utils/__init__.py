# Utils package for the Flipp backend

from .logging_utils import mask_value, sanitize_payload
from .transaction_utils import DeadlockError, TransactionError, retry_on_deadlock


__all__ = ["mask_value", "sanitize_payload", "DeadlockError", "TransactionError", "retry_on_deadlock"]
