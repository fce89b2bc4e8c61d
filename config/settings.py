"""
Configuration settings for the crypto-convert price cache.

Loads endpoints and polling behaviour from environment variables.
Defines application constants.
"""

import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Load environment variables from .env file ---
# Determine project root directory (assumes config/settings.py is 2 levels below root)
current_file_dir = os.path.dirname(os.path.abspath(__file__))          # .../crypto-convert/config
project_root = os.path.abspath(os.path.join(current_file_dir, ".."))   # .../crypto-convert
dotenv_path = os.path.join(project_root, ".env")

if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    logger.debug(f".env file not found at expected path: {dotenv_path}")


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- Price Source Endpoints ---
BINANCE_API_URL = os.getenv("BINANCE_API_URL", "https://api.binance.com/api/v3/ticker/price")
BITFINEX_API_URL = os.getenv("BITFINEX_API_URL", "https://api-pub.bitfinex.com/v2/tickers")
COINBASE_API_URL = os.getenv("COINBASE_API_URL", "https://api.coinbase.com/v2/exchange-rates")
FIAT_API_URL = os.getenv("FIAT_API_URL", "https://open.er-api.com/v6/latest/USD")
CRYPTO_INFO_API_URL = os.getenv("CRYPTO_INFO_API_URL", "https://api.coingecko.com/api/v3/coins/markets")

# Number of ranked coins to pull metadata for (CoinGecko caps a page at 250)
CRYPTO_INFO_LIMIT = int(os.getenv("CRYPTO_INFO_LIMIT", 250))
# Seconds before an HTTP request to a price source is abandoned
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", 10))

# --- Polling Configuration (milliseconds) ---
CRYPTO_INTERVAL = int(os.getenv("CRYPTO_INTERVAL", 5000))           # every 5 seconds
FIAT_INTERVAL = int(os.getenv("FIAT_INTERVAL", 60 * 60 * 1000))     # every hour

# Exchanges used for crypto tickers
USE_BINANCE = _env_flag("USE_BINANCE")
USE_BITFINEX = _env_flag("USE_BITFINEX")
USE_COINBASE = _env_flag("USE_COINBASE")

# --- Runner Configuration ---
# Pairs logged by main.py on every crypto refresh, as FROM:TO
CONVERT_PAIRS = [
    tuple(pair.strip().upper().split(":", 1))
    for pair in os.getenv("CONVERT_PAIRS", "BTC:USD,ETH:EUR,USD:BTC").split(",")
    if ":" in pair
]

# --- Validation ---
if CRYPTO_INTERVAL <= 0 or FIAT_INTERVAL <= 0:
    raise ValueError("CRYPTO_INTERVAL and FIAT_INTERVAL must be positive.")

if HTTP_TIMEOUT <= 0:
    raise ValueError("HTTP_TIMEOUT must be positive.")

if not (USE_BINANCE or USE_BITFINEX or USE_COINBASE):
    logger.warning("All crypto price sources are disabled. Crypto tickers will never load.")

logger.info("Configuration loaded:")
logger.info(f"  CRYPTO_INTERVAL: {CRYPTO_INTERVAL} ms")
logger.info(f"  FIAT_INTERVAL: {FIAT_INTERVAL} ms")
logger.info(f"  Sources: binance={USE_BINANCE} bitfinex={USE_BITFINEX} coinbase={USE_COINBASE}")
logger.info(f"  HTTP_TIMEOUT: {HTTP_TIMEOUT}s")
logger.info(f"  CONVERT_PAIRS: {CONVERT_PAIRS}")
