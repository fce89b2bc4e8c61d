"""
Core services: the background price worker, the custom currency registry and
the pairwise conversion engine.
"""
from .exceptions import RegistryConflictError, CustomFetcherError
from .custom import CustomCurrencyRegistry, CustomCurrencyEntry
from .worker import PriceWorker, WorkerState, get_worker, merge_tickers
from .pairs import PairConverter, PairTable, PairRow

__all__ = [
    "RegistryConflictError",
    "CustomFetcherError",
    "CustomCurrencyRegistry",
    "CustomCurrencyEntry",
    "PriceWorker",
    "WorkerState",
    "get_worker",
    "merge_tickers",
    "PairConverter",
    "PairTable",
    "PairRow",
]
