"""
Background worker that keeps crypto tickers and fiat rates cached in memory.

The worker polls the enabled exchange sources every `crypto_interval` ms and
the fiat rate table every `fiat_interval` ms. Every successful poll replaces
the cached snapshot wholesale; a failed poll is logged and the previous
snapshot keeps being served until the next tick.
"""

import asyncio
import enum
import inspect
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from config import settings
from crypto_convert.api import HTTPPriceFetcher
from crypto_convert.models import CryptoInfo, CurrencyList, Options, PriceSnapshot, PriceTable

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]

# Exchange option name -> fetcher method name
CRYPTO_SOURCES = (
    ("binance", "get_binance_tickers"),
    ("bitfinex", "get_bitfinex_tickers"),
    ("coinbase", "get_coinbase_tickers"),
)


class WorkerState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    STOPPED = "stopped"


def default_options() -> Options:
    return Options(
        crypto_interval=settings.CRYPTO_INTERVAL,
        fiat_interval=settings.FIAT_INTERVAL,
        binance=settings.USE_BINANCE,
        bitfinex=settings.USE_BITFINEX,
        coinbase=settings.USE_COINBASE,
    )


def merge_tickers(sources: Iterable[Mapping[Pair, float]]) -> Dict[Pair, float]:
    """
    Merges tickers from several exchanges.

    When more than one source quotes the same (base, quote) pair the result is
    the arithmetic mean of their rates, so the outcome does not depend on the
    order the sources answered in.
    """
    collected: Dict[Pair, List[float]] = defaultdict(list)
    for tickers in sources:
        for pair, rate in tickers.items():
            collected[pair].append(rate)
    return {pair: sum(rates) / len(rates) for pair, rates in collected.items()}


class PriceWorker:
    """
    Polls price sources on asyncio timers and exposes the latest snapshot.

    Args:
        options (Optional[Options]): Polling options, defaults from settings.
        fetcher: Object exposing the HTTPPriceFetcher methods. Methods are
            called in worker threads.
        autostart (bool): Start polling immediately if an event loop is running.
    """
    def __init__(self, options: Optional[Options] = None, fetcher: Any = HTTPPriceFetcher, autostart: bool = True):
        self.options: Options = (options or default_options()).validate()
        self.fetcher = fetcher
        self.state = WorkerState.UNINITIALIZED

        # Replaced as a whole on every update, never mutated
        self.data = PriceSnapshot()
        self.list = CurrencyList()
        self.crypto_info: Mapping[str, CryptoInfo] = {}

        self._timers: List[asyncio.Task] = []
        self._in_flight: Set[asyncio.Task] = set()
        self._load_task: Optional[asyncio.Task] = None
        self._ready_event = asyncio.Event()
        self._crypto_loaded = False
        self._fiat_loaded = False
        self._ready_listeners: List[Callable[[], Any]] = []

        if autostart:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop; price worker will start on first ready()/start().")
            else:
                self.start()

    # --- State ---

    @property
    def is_ready(self) -> bool:
        return self.state == WorkerState.READY

    @property
    def is_running(self) -> bool:
        return any(not timer.done() for timer in self._timers)

    def add_ready_listener(self, callback: Callable[[], Any]) -> None:
        """Registers a callback run every time the worker becomes ready."""
        self._ready_listeners.append(callback)

    def set_options(self, options: Optional[Mapping[str, Any]] = None, **kwargs) -> "PriceWorker":
        """
        Merges option changes. Interval changes only apply after restart().

        Raises:
            ValueError: On unknown option names or invalid values.
        """
        changes = dict(options or {}, **kwargs)
        unknown = set(changes) - set(Options.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown options: {', '.join(sorted(unknown))}")
        self.options = replace(self.options, **changes).validate()
        logger.info(f"Price worker options updated: {', '.join(sorted(changes)) or 'no changes'}")
        return self

    # --- Lifecycle ---

    def start(self) -> asyncio.Task:
        """
        Starts a new loading epoch in the background.

        Any load still in flight is cancelled and its timers cleared, so only
        one load task and one set of timers exist at a time.

        Returns:
            asyncio.Task: Resolves to the worker once it is ready.
        """
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._cancel_timers()
        # Enter the new epoch now so ready() cannot resolve on the previous one
        self.state = WorkerState.LOADING
        self._crypto_loaded = False
        self._fiat_loaded = False
        # One-shot per epoch; callers still waiting on an unfinished epoch keep their event
        if self._ready_event.is_set():
            self._ready_event = asyncio.Event()
        self._load_task = asyncio.ensure_future(self._load())
        return self._load_task

    async def restart(self) -> "PriceWorker":
        """Clears timers, reloads lists and prices, and resolves once ready."""
        self.start()
        await self._ready_event.wait()
        return self

    async def ready(self) -> "PriceWorker":
        """
        Waits until the current epoch is ready.

        Starts the worker if it was never started, or if it was stopped before
        its last epoch became ready.
        """
        if self.state == WorkerState.UNINITIALIZED or (
            self.state == WorkerState.STOPPED and not self._ready_event.is_set()
        ):
            self.start()
        await self._ready_event.wait()
        return self

    def stop(self) -> "PriceWorker":
        """Stops polling. Cached prices stay readable but are no longer refreshed."""
        self._cancel_timers()
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self.state = WorkerState.STOPPED
        logger.info("Price worker stopped.")
        return self

    async def _load(self) -> "PriceWorker":
        logger.info("Price worker loading...")

        await self._refresh_crypto_info()
        await self._poll_fiat()

        self._cancel_timers()
        self._timers = [
            asyncio.create_task(self._interval(self._poll_crypto, "crypto_interval", immediate=True), name="crypto-prices"),
            asyncio.create_task(self._interval(self._poll_fiat, "fiat_interval", immediate=False), name="fiat-prices"),
        ]
        await self._ready_event.wait()
        return self

    def _cancel_timers(self) -> None:
        for timer in self._timers:
            if not timer.done():
                timer.cancel()
        self._timers = []

    async def _interval(self, poll: Callable[[], Any], option_name: str, immediate: bool) -> None:
        # The period is read once per epoch; restart() applies a changed interval
        period = getattr(self.options, option_name) / 1000
        if not immediate:
            await asyncio.sleep(period)
        while True:
            task = asyncio.create_task(poll())
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            await asyncio.sleep(period)

    # --- Polling ---

    async def _refresh_crypto_info(self) -> None:
        try:
            info = await asyncio.to_thread(self.fetcher.get_crypto_info)
        except Exception as e:
            logger.error(f"Failed to refresh cryptocurrency metadata, keeping previous list: {e}")
            return
        if info:
            self.crypto_info = dict(info)
            self.list = CurrencyList(crypto=self._crypto_symbols((), extra=self.list.crypto), fiat=self.list.fiat)

    async def _poll_crypto(self) -> None:
        sources = [(name, getattr(self.fetcher, method)) for name, method in CRYPTO_SOURCES if getattr(self.options, name)]
        if not sources:
            logger.warning("No crypto price source enabled; skipping crypto poll.")
            return

        results = await asyncio.gather(*(asyncio.to_thread(fetch) for _, fetch in sources), return_exceptions=True)

        fetched: List[Mapping[Pair, float]] = []
        for (name, _), result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.error(f"Crypto poll from {name} failed: {result}")
            elif result:
                fetched.append(result)
            else:
                logger.warning(f"Crypto poll from {name} returned no tickers.")

        if not fetched:
            logger.warning("All crypto sources failed; keeping cached tickers.")
            return

        try:
            merged = merge_tickers(fetched)
            crypto_list = self._crypto_symbols(merged)
            fiat = self._fiat_universe()
            known = set(crypto_list) | fiat
            current = {
                base + quote: rate
                for (base, quote), rate in merged.items()
                if base in known and quote in known and not (base in fiat and quote in fiat)
            }
        except Exception:
            logger.exception("Unexpected error merging crypto tickers; keeping cached tickers.")
            return

        self.list = CurrencyList(crypto=crypto_list, fiat=self.list.fiat)
        self.data = self.data.with_crypto(PriceTable.build(current))
        self._crypto_loaded = True
        logger.debug(f"Crypto tickers updated: {len(current)} pairs from {len(fetched)} source(s).")

        self._check_ready()
        await self._notify(self.data.crypto.current, False)

    async def _poll_fiat(self) -> None:
        try:
            rates = await asyncio.to_thread(self.fetcher.get_fiat_rates)
        except Exception as e:
            logger.error(f"Fiat poll failed; keeping cached rates: {e}")
            return
        if not rates:
            logger.warning("Fiat poll returned no rates; keeping cached rates.")
            return

        self.data = self.data.with_fiat(PriceTable.build(rates))
        self.list = CurrencyList(crypto=self.list.crypto, fiat=tuple(rates))
        self._fiat_loaded = True
        logger.debug(f"Fiat rates updated: {len(rates)} currencies.")

        self._check_ready()
        await self._notify(self.data.fiat.current, True)

    def _fiat_universe(self) -> Set[str]:
        # USD is the base of the fiat table even before the first fiat poll lands
        return set(self.data.fiat.current) | {"USD"}

    def _crypto_symbols(self, pairs: Iterable[Pair], extra: Iterable[str] = ()) -> Tuple[str, ...]:
        """Metadata symbols by rank, then any other non-fiat symbol seen in tickers."""
        fiat = self._fiat_universe()
        symbols = dict.fromkeys(symbol for symbol in self.crypto_info if symbol not in fiat)
        for pair in pairs:
            for symbol in pair:
                if symbol not in fiat:
                    symbols.setdefault(symbol)
        for symbol in extra:
            if symbol not in fiat:
                symbols.setdefault(symbol)
        return tuple(symbols)

    def _check_ready(self) -> None:
        if self.state != WorkerState.LOADING or not (self._crypto_loaded and self._fiat_loaded):
            return
        self.state = WorkerState.READY
        logger.info(
            f"Price worker ready: {len(self.list.crypto)} crypto, {len(self.list.fiat)} fiat, "
            f"{len(self.data.crypto.current)} pairs."
        )
        for callback in list(self._ready_listeners):
            try:
                callback()
            except Exception:
                logger.exception("Ready listener raised.")
        self._ready_event.set()

    async def _notify(self, tickers: Mapping[str, float], is_fiat: bool) -> None:
        callback = self.options.on_update
        if callback is None:
            return
        try:
            result = callback(tickers, is_fiat)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_update callback raised.")


_worker: Optional[PriceWorker] = None


def get_worker() -> PriceWorker:
    """Returns the process-wide price worker, creating it on first use."""
    global _worker
    if _worker is None:
        _worker = PriceWorker()
    return _worker
