"""
Live conversion between cryptocurrencies and fiat currencies.

    from crypto_convert import convert

    await convert.ready()
    convert.BTC.USD(1)
"""
from .facade import Convert, RESERVED_NAMES
from .models import Options
from .services import RegistryConflictError, CustomFetcherError, PriceWorker

# Default instance bound to the process-wide price worker. Polling begins on
# the first ready()/start() call made inside a running event loop.
convert = Convert()

__all__ = [
    "convert",
    "Convert",
    "RESERVED_NAMES",
    "Options",
    "PriceWorker",
    "RegistryConflictError",
    "CustomFetcherError",
]
