"""
Utility modules for number formatting and logging configuration.
"""
from .helpers import format_number, is_empty, CRYPTO_PRECISION, FIAT_PRECISION
from .logging_config import setup_logging

__all__ = ["format_number", "is_empty", "CRYPTO_PRECISION", "FIAT_PRECISION", "setup_logging"]
