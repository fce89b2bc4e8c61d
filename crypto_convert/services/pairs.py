"""
Conversion arithmetic between every pair of supported currencies.

A conversion resolves its rate in this order: same currency, direct or
inverse cached rate (custom rates first), crypto->crypto through USD,
fiat->fiat through the fiat table, then crypto<->fiat through the coin's USD
price (bridged through BTC or ETH when no USD market exists).

Results are a float on success, False when prices are not loaded yet or the
amount is unusable, and None when no route exists between the two symbols.
"""

import logging
import math
from collections.abc import Mapping
from functools import partial
from typing import Any, Callable, Dict, FrozenSet, Iterator, Optional, Sequence, Union

from crypto_convert.utils import CRYPTO_PRECISION, FIAT_PRECISION, format_number, is_empty

logger = logging.getLogger(__name__)

Result = Union[float, bool, None]

# Intermediate coins tried, in order, when a coin has no USD market
BRIDGE_CURRENCIES = ("BTC", "ETH")


class PairConverter:
    """
    Converts amounts using the live state of a price worker and a custom registry.

    Both collaborators are read on every call, never copied, so conversions
    always use the latest snapshot.
    """
    def __init__(self, worker, registry):
        self.worker = worker
        self.registry = registry

    def get_price(self, coin: str, to: str = "USD") -> Optional[float]:
        """
        Looks up a cached rate for coin->to, or the reciprocal of to->coin.

        Custom registry rates take precedence over exchange tickers.
        """
        if coin == to:
            return None
        return self._lookup(self.registry.ticker, coin, to) or self._lookup(self.worker.data.crypto.current, coin, to)

    @staticmethod
    def _lookup(tickers: Mapping[str, float], coin: str, to: str) -> Optional[float]:
        rate = tickers.get(coin + to)
        if rate:
            return rate
        inverse = tickers.get(to + coin)
        if inverse:
            return 1 / inverse
        return None

    def usd_price(self, coin: str, _visited: FrozenSet[str] = frozenset()) -> Optional[float]:
        """
        Price of one `coin` in USD: direct, else through BTC, else through ETH.
        """
        price = self.get_price(coin, "USD")
        if price:
            return price
        visited = _visited | {coin}
        for bridge in BRIDGE_CURRENCIES:
            if bridge in visited:
                continue
            rate = self.get_price(coin, bridge)
            if not rate:
                continue
            bridge_price = self.usd_price(bridge, visited)
            if bridge_price:
                return rate * bridge_price
        return None

    def crypto_symbols(self) -> Sequence[str]:
        return list(self.worker.list.crypto) + self.registry.list

    def convert(self, coin: str, to: str, amount: Any) -> Result:
        """
        Converts `amount` of `coin` into `to`.

        Returns:
            float | False | None: converted amount; False if the cache is empty or
            the amount is not a usable number; None if no rate can be derived.
        """
        crypto_prices = self.worker.data.crypto.current
        fiat = self.worker.data.fiat.current

        if is_empty(crypto_prices) or is_empty(fiat):
            logger.warning("Prices are loading. Await ready() before converting.")
            return False

        if not amount:
            return False
        amount = format_number(amount)
        if math.isnan(amount) or amount == 0:
            return False

        if coin == to:
            return amount

        both_fiat = coin in fiat and to in fiat

        rate = self.get_price(coin, to)
        if rate:
            return format_number(rate * amount, FIAT_PRECISION if both_fiat else CRYPTO_PRECISION)

        cryptos = self.crypto_symbols()

        if coin in cryptos and to in cryptos:
            coin_usd = self.usd_price(coin)
            to_usd = self.usd_price(to)
            if not coin_usd or not to_usd:
                return None
            return format_number(coin_usd / to_usd * amount, CRYPTO_PRECISION)

        if both_fiat:
            return format_number((amount / fiat[coin]) * fiat[to], FIAT_PRECISION)

        usd_rate = fiat.get("USD", 1.0)

        if to in fiat:
            coin_usd = self.usd_price(coin)
            if not coin_usd:
                return None
            exchange_price = (coin_usd / usd_rate) * fiat[to]
            return format_number(exchange_price * amount, CRYPTO_PRECISION)

        if coin in fiat:
            to_usd = self.usd_price(to)
            if not to_usd:
                return None
            exchange_price = (to_usd / usd_rate) * fiat[coin]
            return format_number(amount / exchange_price, CRYPTO_PRECISION)

        return None

    def bind(self, coin: str, to: str) -> Callable[[Any], Result]:
        """Returns a one-argument conversion function for coin->to."""
        return partial(self.convert, coin, to)


class PairRow(Mapping):
    """
    Conversion functions from one symbol to every symbol of a fixed universe.

    Supports ``row["USD"](1)`` and ``row.USD(1)``.
    """
    def __init__(self, converter: PairConverter, coin: str, universe: FrozenSet[str], order: Sequence[str]):
        self._converter = converter
        self._coin = coin
        self._universe = universe
        self._order = order

    def __getitem__(self, to: str) -> Callable[[Any], Result]:
        if to not in self._universe:
            raise KeyError(to)
        return self._converter.bind(self._coin, to)

    def __getattr__(self, to: str) -> Callable[[Any], Result]:
        if to.startswith("_"):
            raise AttributeError(to)
        try:
            return self[to]
        except KeyError:
            raise AttributeError(f"No conversion from {self._coin} to {to}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"PairRow({self._coin!r}, {len(self._order)} currencies)"


class PairTable(Mapping):
    """
    Read-only table of conversion functions keyed by (from, to) symbol.

    Built for a fixed symbol universe; rebuild it when the universe changes.
    Functions are created on access and always read live prices.
    """
    def __init__(self, converter: PairConverter, symbols: Sequence[str]):
        self._converter = converter
        self._order = tuple(dict.fromkeys(s for s in symbols if isinstance(s, str) and s))
        self._universe = frozenset(self._order)
        self._rows: Dict[str, PairRow] = {}

    def __getitem__(self, coin: str) -> PairRow:
        if coin not in self._universe:
            raise KeyError(coin)
        row = self._rows.get(coin)
        if row is None:
            row = self._rows[coin] = PairRow(self._converter, coin, self._universe, self._order)
        return row

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def get_pair(self, coin: str, to: str) -> Optional[Callable[[Any], Result]]:
        if coin not in self._universe or to not in self._universe:
            return None
        return self._converter.bind(coin, to)
