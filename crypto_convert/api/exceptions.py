"""
Custom exceptions related to price source interactions.
"""

class PriceSourceError(Exception):
    """Raised when a price source cannot be reached or returns unusable data."""
    def __init__(self, source: str, message: str, status: int = None):
        self.source = source
        self.message = message
        self.status = status
        super().__init__(f"{source} error{f' {status}' if status else ''}: {message}")

    def __str__(self):
        return f"PriceSourceError(source={self.source}, status={self.status}, message='{self.message}')"
