"""
Domain exceptions for the Elpris service.
Provides clear, typed exceptions for fetch, parse and configuration errors.
"""

from typing import Optional


class PriceAPIException(Exception):
    """Base exception for all Elpris errors."""
    pass


class NetworkFailure(PriceAPIException):
    """Raised when an upstream request fails at transport level or with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ParseFailure(PriceAPIException):
    """Raised when an upstream response body is not a usable price list."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ConfigurationError(PriceAPIException):
    """Raised for unknown markets or zones and unsupported display options."""
    pass


class DatabaseError(PriceAPIException):
    """Raised when database operations fail."""
    pass
