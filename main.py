"""
Main entry point for the crypto-convert price cache.

Starts the background price worker, waits for prices to load, then logs the
configured conversion pairs after every crypto refresh until interrupted.
"""

import asyncio
import logging
import os
import signal

from dotenv import load_dotenv
# --- Load environment variables from .env file ---
# Load .env located next to main.py BEFORE importing settings
dotenv_path = os.path.join(os.path.dirname(__file__), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
    print(f"Loaded environment variables from: {dotenv_path}")
else:
    print("Warning: .env file not found. Relying on system environment variables.")

from config import settings
from crypto_convert import convert
from crypto_convert.utils import setup_logging

# Setup logging as early as possible
setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), log_to_file=os.getenv("LOG_TO_FILE", "false").lower() == "true")

logger = logging.getLogger(__name__)

shutdown_event = asyncio.Event()


def handle_shutdown_signal(sig, frame):
    """Sets the shutdown event when a signal is received."""
    logger.warning(f"Received signal {sig}. Initiating graceful shutdown...")
    shutdown_event.set()


def log_conversions():
    """Logs the configured pairs using the latest cached prices."""
    for coin, to in settings.CONVERT_PAIRS:
        fn = convert.pair(coin, to)
        if fn is None:
            logger.warning(f"Unsupported pair {coin}->{to}; check CONVERT_PAIRS.")
            continue
        result = fn(1)
        if result is None:
            logger.info(f"1 {coin} -> {to}: no route")
        elif result is False:
            logger.info(f"1 {coin} -> {to}: prices not loaded")
        else:
            logger.info(f"1 {coin} -> {to} = {result}")


async def main_runner():
    """Main asynchronous execution function."""
    try:
        logger.info("Starting price worker...")
        try:
            async with asyncio.timeout(60):
                await convert.ready()
        except TimeoutError:
            logger.critical("Prices did not load within 60 seconds. Check network access and source settings.")
            return

        logger.info(
            f"Prices loaded: {len(convert.list['crypto'])} crypto, {len(convert.list['fiat'])} fiat currencies."
        )

        # --- Report Loop ---
        period = convert.worker.options.crypto_interval / 1000
        while not shutdown_event.is_set():
            log_conversions()
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=period)
            except TimeoutError:
                pass

    except asyncio.CancelledError:
        logger.info("Main runner task cancelled.")
    except Exception:
        logger.exception("Unhandled exception in main_runner:")
    finally:
        logger.info("Initiating shutdown...")
        convert.close()
        logger.info("Shutdown complete.")


if __name__ == "__main__":
    signal.signal(signal.SIGINT, handle_shutdown_signal)
    signal.signal(signal.SIGTERM, handle_shutdown_signal)

    logger.info("Starting crypto-convert...")
    try:
        asyncio.run(main_runner())
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt caught in __main__.")
    except Exception as e:
        logger.critical(f"Critical error preventing startup: {e}", exc_info=True)

    logger.info("crypto-convert finished.")
