"""
Data models for cached prices, currency lists and worker options.
"""
from .prices import PriceTable, PriceSnapshot, CurrencyList, CryptoInfo, Options, now_ms

__all__ = [
    "PriceTable",
    "PriceSnapshot",
    "CurrencyList",
    "CryptoInfo",
    "Options",
    "now_ms",
]
