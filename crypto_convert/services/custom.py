"""
Registry of user-supplied price fetchers for currencies the built-in
exchange feeds do not cover.
"""

import asyncio
import inspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from crypto_convert.utils import format_number
from .exceptions import CustomFetcherError

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Union[float, Awaitable[float]]]


@dataclass
class CustomCurrencyEntry:
    """State of one registered (base, quote) fetcher."""
    base: str
    quote: str
    fetcher: Fetcher
    interval_ms: int
    cached_rate: Optional[float] = None
    timer: Optional[asyncio.Task] = None

    @property
    def key(self) -> str:
        return self.base + self.quote


class CustomCurrencyRegistry:
    """
    Holds custom currency fetchers, each polled on its own interval.

    The first fetch of a new pair is awaited by add_currency(); afterwards a
    timer task re-runs the fetcher every interval and overwrites the cached
    rate when it succeeds. A slow fetcher may overlap its next tick.
    """
    def __init__(self):
        self._entries: Dict[Tuple[str, str], CustomCurrencyEntry] = {}
        self._seeding: Set[asyncio.Future] = set()
        self._in_flight: Set[asyncio.Task] = set()

    # --- Read-only views ---

    @property
    def list(self) -> List[str]:
        """Distinct base symbols in registration order."""
        return list(dict.fromkeys(base for base, _ in self._entries))

    @property
    def ticker(self) -> Dict[str, float]:
        """Pair-key -> cached rate for every seeded entry."""
        return {entry.key: entry.cached_rate for entry in self._entries.values() if entry.cached_rate is not None}

    def entries(self) -> List[CustomCurrencyEntry]:
        return list(self._entries.values())

    # --- Mutation ---

    async def add_currency(self, base: str, quote: str, fetcher: Fetcher, interval_ms: int) -> None:
        """
        Registers a custom pair, seeds its rate and starts polling.

        Args:
            base (str): Symbol being priced (e.g. 'FOO').
            quote (str): Symbol the price is expressed in (e.g. 'USD').
            fetcher: Sync or async callable returning the current rate.
            interval_ms (int): Milliseconds between refreshes.

        Raises:
            ValueError: On an invalid symbol, fetcher or interval.
            CustomFetcherError: If the first fetch fails. The pair is not registered
                (a previously registered fetcher for the same pair stays in place).
        """
        if not isinstance(base, str) or not base or not isinstance(quote, str) or not quote:
            raise ValueError("base and quote must be non-empty strings.")
        if not callable(fetcher):
            raise ValueError("fetcher must be callable.")
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)) or interval_ms <= 0:
            raise ValueError(f"interval_ms must be a positive number, got {interval_ms!r}")

        entry = CustomCurrencyEntry(base=base, quote=quote, fetcher=fetcher, interval_ms=interval_ms)

        seed = asyncio.ensure_future(self._fetch(entry))
        self._seeding.add(seed)
        try:
            rate = await seed
        except Exception as e:
            logger.error(f"Seeding custom currency {base}/{quote} failed: {e}")
            raise CustomFetcherError(base, quote, str(e)) from e
        finally:
            self._seeding.discard(seed)

        entry.cached_rate = rate

        previous = self._entries.get((base, quote))
        if previous is not None:
            logger.info(f"Replacing custom fetcher for {base}/{quote}.")
            self._cancel(previous)

        entry.timer = asyncio.create_task(self._run_timer(entry), name=f"custom-{base}{quote}")
        self._entries[(base, quote)] = entry
        logger.info(f"Added custom currency {base}/{quote} at {rate} (refresh every {interval_ms} ms).")

    def remove_currency(self, base: str, quote: Optional[str] = None) -> None:
        """
        Removes one custom pair, or every pair of `base` when `quote` is omitted.
        """
        keys = [key for key in self._entries if key[0] == base and (quote is None or key[1] == quote)]
        if not keys:
            logger.debug(f"remove_currency: nothing registered for {base}/{quote or '*'}.")
            return
        for key in keys:
            self._cancel(self._entries.pop(key))
        logger.info(f"Removed custom currency pairs: {', '.join(b + '/' + q for b, q in keys)}")

    async def ready(self) -> None:
        """Waits for every pending first fetch to finish, successful or not."""
        while self._seeding:
            await asyncio.gather(*list(self._seeding), return_exceptions=True)

    def stop(self) -> None:
        """Cancels every custom timer without unregistering the pairs."""
        for entry in self._entries.values():
            self._cancel(entry)

    # --- Internals ---

    @staticmethod
    def _cancel(entry: CustomCurrencyEntry) -> None:
        if entry.timer is not None and not entry.timer.done():
            entry.timer.cancel()
        entry.timer = None

    @staticmethod
    async def _fetch(entry: CustomCurrencyEntry) -> float:
        result: Any = entry.fetcher()
        if inspect.isawaitable(result):
            result = await result
        rate = format_number(result)
        if math.isnan(rate) or rate <= 0:
            raise ValueError(f"fetcher returned an invalid rate: {result!r}")
        return rate

    async def _refresh(self, entry: CustomCurrencyEntry) -> None:
        try:
            entry.cached_rate = await self._fetch(entry)
            logger.debug(f"Custom rate {entry.base}/{entry.quote} updated: {entry.cached_rate}")
        except Exception as e:
            # Keep serving the last good rate
            logger.error(f"Custom fetcher {entry.base}/{entry.quote} failed, keeping {entry.cached_rate}: {e}")

    async def _run_timer(self, entry: CustomCurrencyEntry) -> None:
        while True:
            await asyncio.sleep(entry.interval_ms / 1000)
            task = asyncio.create_task(self._refresh(entry))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
