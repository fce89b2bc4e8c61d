"""
Exceptions raised by the conversion services.
"""

class RegistryConflictError(ValueError):
    """Raised when a custom currency symbol clashes with a reserved facade name."""
    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"'{symbol}' is a reserved name and cannot be used as a currency symbol.")


class CustomFetcherError(Exception):
    """Raised when a custom currency fetcher fails to produce its first rate."""
    def __init__(self, base: str, quote: str, reason: str):
        self.base = base
        self.quote = quote
        self.reason = reason
        super().__init__(f"Custom fetcher for {base}/{quote} failed: {reason}")
