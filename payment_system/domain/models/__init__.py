from .exchange_rate import ExchangeRate, ExchangeRateManager


__all__ = [
    "ExchangeRate",
    "ExchangeRateManager",
]
