"""
Price source interaction package.

Provides the HTTP client used to pull crypto tickers, fiat rates and coin
metadata from public REST APIs.
"""

from .exceptions import PriceSourceError
from .http_fetcher import HTTPPriceFetcher

__all__ = [
    "PriceSourceError",
    "HTTPPriceFetcher",
]
