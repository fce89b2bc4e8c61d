"""
Public conversion object tying the price worker and the custom registry together.

Usage:

    from crypto_convert import convert

    await convert.ready()
    convert.BTC.USD(1)
    convert["ETH"]["JPY"](2.5)
    convert.pair("USD", "EUR")(100)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from crypto_convert.models import PriceSnapshot
from crypto_convert.services.custom import CustomCurrencyRegistry, Fetcher
from crypto_convert.services.exceptions import RegistryConflictError
from crypto_convert.services.pairs import PairConverter, PairRow, PairTable, Result
from crypto_convert.services.worker import PriceWorker, WorkerState, get_worker

logger = logging.getLogger(__name__)

# Names of the facade's own attributes. A currency symbol equal to one of
# these could not be reached as ``convert.<SYMBOL>``.
RESERVED_NAMES = frozenset({
    "is_ready",
    "list",
    "crypto_info",
    "last_updated",
    "ticker",
    "pairs",
    "pair",
    "initialize",
    "ready",
    "start",
    "stop",
    "close",
    "set_options",
    "add_currency",
    "remove_currency",
    "worker",
    "registry",
    "converter",
})


class Convert:
    """
    Converts between cryptocurrencies and fiat currencies using live prices.

    Args:
        worker (Optional[PriceWorker]): Price worker, defaults to the process-wide one.
        registry (Optional[CustomCurrencyRegistry]): Custom currency registry.
    """
    def __init__(self, worker: Optional[PriceWorker] = None, registry: Optional[CustomCurrencyRegistry] = None):
        self.worker = worker or get_worker()
        self.registry = registry or CustomCurrencyRegistry()
        self.converter = PairConverter(self.worker, self.registry)
        self._pairs = PairTable(self.converter, ())

        self.worker.add_ready_listener(self.initialize)
        if self.worker.is_ready:
            self.initialize()

    # --- Live views ---

    @property
    def is_ready(self) -> bool:
        return self.worker.is_ready

    @property
    def list(self) -> Dict[str, List[str]]:
        crypto = list(dict.fromkeys(list(self.worker.list.crypto) + self.registry.list))
        return {"crypto": crypto, "fiat": list(self.worker.list.fiat)}

    @property
    def crypto_info(self) -> Dict[str, Dict[str, Any]]:
        return {symbol: info.as_dict() for symbol, info in self.worker.crypto_info.items()}

    @property
    def last_updated(self) -> int:
        """Epoch ms of the last successful crypto poll."""
        return self.worker.data.crypto.last_updated

    @property
    def ticker(self) -> PriceSnapshot:
        return self.worker.data

    @property
    def pairs(self) -> PairTable:
        return self._pairs

    # --- Pair access ---

    def initialize(self) -> None:
        """Rebuilds the pair table for the current symbol universe."""
        symbols = list(self.worker.list.crypto) + list(self.worker.list.fiat) + self.registry.list
        self._pairs = PairTable(self.converter, symbols)
        logger.debug(f"Pair table rebuilt for {len(self._pairs)} currencies.")

    def pair(self, coin: str, to: str) -> Optional[Callable[[Any], Result]]:
        """Returns the conversion function for coin->to, or None if either is unknown."""
        return self._pairs.get_pair(coin, to)

    def __getitem__(self, coin: str) -> PairRow:
        return self._pairs[coin]

    def __getattr__(self, coin: str) -> PairRow:
        # Only reached for names that are not regular attributes
        if coin.startswith("_"):
            raise AttributeError(coin)
        try:
            return self.__dict__["_pairs"][coin]
        except KeyError:
            raise AttributeError(f"Unknown currency: {coin}") from None

    def __contains__(self, coin: str) -> bool:
        return coin in self._pairs

    # --- Lifecycle ---

    async def ready(self) -> "Convert":
        """Waits for prices and custom currencies to load."""
        await self.worker.ready()
        await self.registry.ready()
        return self

    def start(self) -> asyncio.Task:
        """
        Restarts the worker after stop(). Must be called with a running event loop.

        Returns:
            asyncio.Task: Resolves to the worker once it is ready again.
        """
        return self.worker.start()

    def stop(self) -> PriceWorker:
        return self.worker.stop()

    def close(self) -> None:
        """Stops the worker and every custom currency timer."""
        self.worker.stop()
        self.registry.stop()

    def set_options(self, options: Optional[Mapping[str, Any]] = None, **kwargs) -> PriceWorker:
        """
        Updates worker options, restarting it when a polling interval changed.
        """
        changes = dict(options or {}, **kwargs)
        before = (self.worker.options.crypto_interval, self.worker.options.fiat_interval)
        worker = self.worker.set_options(changes)
        after = (worker.options.crypto_interval, worker.options.fiat_interval)

        if before != after and self.worker.state in (WorkerState.LOADING, WorkerState.READY):
            logger.info(f"Polling intervals changed {before} -> {after}; restarting price worker.")
            self.start()
        return worker

    # --- Custom currencies ---

    def add_currency(self, base: str, quote: str, fetcher: Fetcher, interval_ms: int) -> Awaitable[None]:
        """
        Adds a custom currency priced by `fetcher`, refreshed every `interval_ms`.

        Raises:
            RegistryConflictError: Immediately, if `base` is a reserved name.

        Returns:
            Awaitable[None]: Completes once the first rate is fetched.
        """
        if base in RESERVED_NAMES or (isinstance(base, str) and base.startswith("_")):
            raise RegistryConflictError(base)
        return self._add_currency(base, quote, fetcher, interval_ms)

    async def _add_currency(self, base: str, quote: str, fetcher: Fetcher, interval_ms: int) -> None:
        await self.registry.add_currency(base, quote, fetcher, interval_ms)
        self._refresh_pairs()

    def remove_currency(self, base: str, quote: Optional[str] = None) -> None:
        self.registry.remove_currency(base, quote)
        self._refresh_pairs()

    def _refresh_pairs(self) -> None:
        # A table built by an earlier epoch must not keep serving removed symbols
        if self.worker.is_ready or len(self._pairs):
            self.initialize()

    def __repr__(self) -> str:
        return f"Convert(state={self.worker.state.value}, currencies={len(self._pairs)})"
