"""
Pytest configuration and fixtures for crypto-convert.

Provides fake price sources and lightweight stand-ins for the worker and the
custom registry so conversion logic can be tested without network access.
"""

from collections import Counter

import pytest

from crypto_convert.models import CryptoInfo, CurrencyList, Options, PriceSnapshot, PriceTable
from crypto_convert.services import CustomCurrencyRegistry, PairConverter, PriceWorker


class FakeFetcher:
    """
    Stands in for HTTPPriceFetcher. Each attribute holds the value the matching
    method returns, or an exception instance it raises.
    """
    def __init__(self, binance=None, bitfinex=None, coinbase=None, fiat=None, info=None):
        self.binance = binance if binance is not None else {}
        self.bitfinex = bitfinex if bitfinex is not None else {}
        self.coinbase = coinbase if coinbase is not None else {}
        self.fiat = fiat if fiat is not None else {}
        self.info = info if info is not None else {}
        self.calls = Counter()

    def _answer(self, name):
        self.calls[name] += 1
        value = getattr(self, name)
        if isinstance(value, Exception):
            raise value
        return dict(value)

    def get_binance_tickers(self):
        return self._answer("binance")

    def get_bitfinex_tickers(self):
        return self._answer("bitfinex")

    def get_coinbase_tickers(self):
        return self._answer("coinbase")

    def get_fiat_rates(self):
        return self._answer("fiat")

    def get_crypto_info(self):
        return self._answer("info")


class StubWorker:
    """Minimal worker exposing only what PairConverter reads."""
    def __init__(self, crypto, fiat, crypto_list):
        self.data = PriceSnapshot(crypto=PriceTable.build(crypto), fiat=PriceTable.build(fiat))
        self.list = CurrencyList(crypto=tuple(crypto_list), fiat=tuple(fiat))


class StubRegistry:
    def __init__(self, ticker=None):
        self.ticker = dict(ticker or {})

    @property
    def list(self):
        # Custom pair-keys in these tests always have a three-letter quote
        return list(dict.fromkeys(key[:-3] for key in self.ticker))


def make_worker(fetcher, **options) -> PriceWorker:
    """A worker with long intervals, so only the initial polls run during a test."""
    settings = dict(crypto_interval=60_000, fiat_interval=60_000, binance=True, bitfinex=True, coinbase=True)
    settings.update(options)
    return PriceWorker(Options(**settings), fetcher=fetcher, autostart=False)


def make_converter(crypto, fiat, crypto_list, custom=None) -> PairConverter:
    return PairConverter(StubWorker(crypto, fiat, crypto_list), StubRegistry(custom))


@pytest.fixture
def crypto_info():
    return {
        "BTC": CryptoInfo(id="bitcoin", symbol="BTC", title="Bitcoin", logo="https://img/btc.png", rank=1),
        "ETH": CryptoInfo(id="ethereum", symbol="ETH", title="Ethereum", logo="https://img/eth.png", rank=2),
    }


@pytest.fixture
def fetcher(crypto_info):
    """Three exchanges with overlapping BTC/USD quotes and a small fiat table."""
    return FakeFetcher(
        binance={("BTC", "USD"): 50000.0, ("ETH", "BTC"): 0.06},
        bitfinex={("BTC", "USD"): 50100.0, ("ETH", "USD"): 3000.0},
        coinbase={("BTC", "USD"): 49900.0, ("EUR", "USD"): 1.1, ("DOGE", "USD"): 0.1},
        fiat={"USD": 1.0, "EUR": 0.9, "GBP": 0.8},
        info=crypto_info,
    )


@pytest.fixture
def converter():
    """Converter over BTC/ETH tickers and a USD/EUR/GBP fiat table."""
    return make_converter(
        crypto={"BTCUSD": 50000.0, "ETHUSD": 3000.0},
        fiat={"USD": 1.0, "EUR": 0.9, "GBP": 0.8},
        crypto_list=["BTC", "ETH"],
    )


@pytest.fixture
def registry():
    return CustomCurrencyRegistry()
