"""
Module for fetching crypto tickers, fiat rates and coin metadata over HTTP.
"""

import requests
import logging
from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

from config import settings
from crypto_convert.models import CryptoInfo
from .exceptions import PriceSourceError

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]

# Quote assets recognised when splitting Binance symbols, longest match wins.
# USD markets exist on regional deployments such as api.binance.us
BINANCE_QUOTES = (
    "FDUSD", "USDT", "USDC", "BUSD", "TUSD", "USDP", "DAI", "USD",
    "BTC", "ETH", "BNB", "XRP", "TRX", "DOGE",
    "EUR", "GBP", "TRY", "BRL", "AUD", "JPY", "RUB", "UAH", "ZAR", "PLN", "RON", "ARS", "MXN", "COP", "IDR",
)

# Stablecoin quotes that stand in for USD when the exchange lists no USD market
USD_PROXIES = {"USDT": "USD"}

# Bitfinex uses three-letter aliases for some tickers
BITFINEX_ALIASES = {
    "UST": "USDT",
    "UDC": "USDC",
    "TSD": "TUSD",
    "DSH": "DASH",
    "QTM": "QTUM",
    "IOT": "IOTA",
    "MNA": "MANA",
    "DAT": "DATA",
    "ALG": "ALGO",
    "EUT": "EURT",
}


class HTTPPriceFetcher:
    """
    Provides static methods to fetch public price data from exchange and
    fiat-rate REST APIs.

    Every method raises PriceSourceError when the source fails; callers decide
    whether a failure is fatal.
    """

    @staticmethod
    def _get_json(source: str, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug(f"Fetching {source} data from {url} with params: {params}")
        try:
            response = requests.get(url, params=params, timeout=settings.HTTP_TIMEOUT)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise PriceSourceError(source, str(e), status) from e
        except requests.exceptions.RequestException as e:
            raise PriceSourceError(source, f"request failed: {e}") from e
        try:
            return response.json()
        except ValueError as e:
            raise PriceSourceError(source, f"invalid JSON: {e}") from e

    @staticmethod
    def split_binance_symbol(symbol: str) -> Optional[Pair]:
        """
        Splits a Binance symbol such as 'ETHBTC' into ('ETH', 'BTC').

        Returns:
            Optional[Tuple[str, str]]: (base, quote), or None if no known quote matches.
        """
        for quote in sorted(BINANCE_QUOTES, key=len, reverse=True):
            if symbol.endswith(quote) and len(symbol) > len(quote):
                return symbol[:-len(quote)], quote
        return None

    @staticmethod
    def get_binance_tickers() -> Dict[Pair, float]:
        """
        Fetches last prices for every Binance spot market.

        Returns:
            Dict[Tuple[str, str], float]: (base, quote) -> price. USDT markets are
            reported against USD.
        """
        data = HTTPPriceFetcher._get_json("binance", settings.BINANCE_API_URL)
        if not isinstance(data, list):
            raise PriceSourceError("binance", f"expected a list of tickers, got {type(data).__name__}")

        tickers: Dict[Pair, float] = {}
        skipped = 0
        for item in data:
            try:
                pair = HTTPPriceFetcher.split_binance_symbol(item["symbol"])
                price = float(item["price"])
            except (KeyError, TypeError, ValueError):
                skipped += 1
                continue
            if pair is None or price <= 0:
                skipped += 1
                continue
            base, quote = pair
            quote = USD_PROXIES.get(quote, quote)
            # A real USD market beats its stablecoin proxy
            if (base, quote) in tickers and quote != pair[1]:
                continue
            tickers[(base, quote)] = price

        logger.debug(f"Parsed {len(tickers)} Binance tickers, skipped {skipped}.")
        return tickers

    @staticmethod
    def split_bitfinex_symbol(symbol: str) -> Optional[Pair]:
        """
        Splits a Bitfinex trading symbol ('tBTCUSD', 'tAVAX:USD') into (base, quote).
        """
        if not symbol.startswith("t"):
            return None  # funding tickers start with 'f'
        body = symbol[1:]
        if body.startswith("TEST"):
            return None
        if ":" in body:
            base, quote = body.split(":", 1)
        elif len(body) == 6:
            base, quote = body[:3], body[3:]
        else:
            return None
        if base.endswith("F0") or quote.endswith("F0"):
            return None  # perpetual derivatives, e.g. tBTCF0:USTF0
        return BITFINEX_ALIASES.get(base, base), BITFINEX_ALIASES.get(quote, quote)

    @staticmethod
    def get_bitfinex_tickers() -> Dict[Pair, float]:
        """
        Fetches last prices for every Bitfinex trading pair.

        Returns:
            Dict[Tuple[str, str], float]: (base, quote) -> last price.
        """
        data = HTTPPriceFetcher._get_json("bitfinex", settings.BITFINEX_API_URL, params={"symbols": "ALL"})
        if not isinstance(data, list):
            raise PriceSourceError("bitfinex", f"expected a list of tickers, got {type(data).__name__}")

        tickers: Dict[Pair, float] = {}
        for row in data:
            # [SYMBOL, BID, BID_SIZE, ASK, ASK_SIZE, DAILY_CHANGE, DAILY_CHANGE_RELATIVE, LAST_PRICE, ...]
            if not isinstance(row, list) or len(row) < 8 or not isinstance(row[0], str):
                continue
            pair = HTTPPriceFetcher.split_bitfinex_symbol(row[0])
            if pair is None:
                continue
            try:
                price = float(row[7])
            except (TypeError, ValueError):
                continue
            if price > 0:
                tickers[pair] = price

        logger.debug(f"Parsed {len(tickers)} Bitfinex tickers.")
        return tickers

    @staticmethod
    def get_coinbase_tickers() -> Dict[Pair, float]:
        """
        Fetches Coinbase exchange rates and turns them into USD prices.

        Coinbase reports units of each currency per 1 USD, so the price of a
        symbol in USD is the reciprocal.

        Returns:
            Dict[Tuple[str, str], float]: (symbol, 'USD') -> price.
        """
        data = HTTPPriceFetcher._get_json("coinbase", settings.COINBASE_API_URL, params={"currency": "USD"})
        try:
            rates = data["data"]["rates"]
        except (KeyError, TypeError) as e:
            raise PriceSourceError("coinbase", "'data.rates' missing in response") from e

        tickers: Dict[Pair, float] = {}
        for symbol, rate in rates.items():
            if symbol == "USD":
                continue
            try:
                rate = float(rate)
            except (TypeError, ValueError):
                continue
            if rate > 0:
                tickers[(symbol.upper(), "USD")] = 1 / rate

        logger.debug(f"Parsed {len(tickers)} Coinbase rates.")
        return tickers

    @staticmethod
    def get_fiat_rates() -> Dict[str, float]:
        """
        Fetches fiat exchange rates relative to USD.

        Returns:
            Dict[str, float]: symbol -> units per 1 USD (USD itself is 1.0).
        """
        data = HTTPPriceFetcher._get_json("fiat", settings.FIAT_API_URL)
        if not isinstance(data, dict) or not isinstance(data.get("rates"), dict):
            raise PriceSourceError("fiat", "'rates' missing in response")
        if data.get("result", "success") != "success":
            raise PriceSourceError("fiat", f"API reported {data.get('result')}: {data.get('error-type', 'unknown error')}")

        rates: Dict[str, float] = {}
        for symbol, rate in data["rates"].items():
            try:
                rate = float(rate)
            except (TypeError, ValueError):
                continue
            if rate > 0:
                rates[symbol.upper()] = rate
        if not rates:
            raise PriceSourceError("fiat", "response contained no usable rates")
        rates.setdefault("USD", 1.0)

        logger.info(f"Fetched {len(rates)} fiat rates.")
        return rates

    @staticmethod
    def get_crypto_info(limit: Optional[int] = None) -> Dict[str, CryptoInfo]:
        """
        Fetches metadata for the top cryptocurrencies by market cap.

        Args:
            limit (Optional[int]): Number of coins, defaults to settings.CRYPTO_INFO_LIMIT.

        Returns:
            Dict[str, CryptoInfo]: symbol -> metadata, ordered by rank. When two
            coins share a symbol the higher-ranked one is kept.
        """
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": limit or settings.CRYPTO_INFO_LIMIT,
            "page": 1,
        }
        data = HTTPPriceFetcher._get_json("crypto_info", settings.CRYPTO_INFO_API_URL, params=params)
        if not isinstance(data, list):
            raise PriceSourceError("crypto_info", f"expected a list of coins, got {type(data).__name__}")

        info: Dict[str, CryptoInfo] = OrderedDict()
        for coin in data:
            if not isinstance(coin, dict) or not coin.get("symbol"):
                continue
            symbol = str(coin["symbol"]).upper()
            if symbol in info:
                continue
            info[symbol] = CryptoInfo(
                id=str(coin.get("id", "")),
                symbol=symbol,
                title=coin.get("name") or symbol,
                logo=coin.get("image") or "",
                rank=coin.get("market_cap_rank"),
            )

        logger.info(f"Fetched metadata for {len(info)} cryptocurrencies.")
        return info
