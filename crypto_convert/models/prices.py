"""
Immutable value objects describing cached prices, supported currencies and
worker options.

Snapshots are never mutated in place: the worker builds a new value and swaps
the reference, so a reader holding a snapshot always sees a complete one.
"""

import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _freeze(mapping: Optional[Mapping[str, float]]) -> Mapping[str, float]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class PriceTable:
    """
    One partition of the cache.

    Attributes:
        current (Mapping[str, float]): Pair-key (e.g. ``"BTCUSD"``) to rate for
            crypto, or symbol to units-per-USD for fiat.
        last_updated (int): Epoch ms of the poll that produced this table, 0 if never.
    """
    current: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    last_updated: int = 0

    @classmethod
    def build(cls, current: Mapping[str, float], last_updated: Optional[int] = None) -> "PriceTable":
        return cls(current=_freeze(current), last_updated=now_ms() if last_updated is None else last_updated)


@dataclass(frozen=True)
class PriceSnapshot:
    """Crypto tickers and fiat rates as of their last successful polls."""
    crypto: PriceTable = field(default_factory=PriceTable)
    fiat: PriceTable = field(default_factory=PriceTable)

    def with_crypto(self, table: PriceTable) -> "PriceSnapshot":
        return replace(self, crypto=table)

    def with_fiat(self, table: PriceTable) -> "PriceSnapshot":
        return replace(self, fiat=table)


@dataclass(frozen=True)
class CurrencyList:
    """Supported symbols, ordered as the sources report them."""
    crypto: Tuple[str, ...] = ()
    fiat: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CryptoInfo:
    """Descriptive metadata for one cryptocurrency."""
    id: str
    symbol: str
    title: str
    logo: str
    rank: Optional[int]

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "symbol": self.symbol, "title": self.title, "logo": self.logo, "rank": self.rank}


@dataclass(frozen=True)
class Options:
    """
    Polling behaviour of the price worker.

    Attributes:
        crypto_interval (int): Milliseconds between crypto polls.
        fiat_interval (int): Milliseconds between fiat polls.
        binance (bool): Use Binance tickers.
        bitfinex (bool): Use Bitfinex tickers.
        coinbase (bool): Use Coinbase rates.
        on_update (Optional[Callable]): Called as ``on_update(tickers, is_fiat)``
            after every successful poll. May be a coroutine function.
    """
    crypto_interval: int = 5000
    fiat_interval: int = 60 * 60 * 1000
    binance: bool = True
    bitfinex: bool = True
    coinbase: bool = True
    on_update: Optional[Callable[[Mapping[str, float], bool], Any]] = None

    def validate(self) -> "Options":
        for name in ("crypto_interval", "fiat_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{name} must be a positive number of milliseconds, got {value!r}")
        if self.on_update is not None and not callable(self.on_update):
            raise ValueError("on_update must be callable.")
        return self
