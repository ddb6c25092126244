from .order_store import OrderStore


__all__ = [
    "OrderStore",
]
