"""
Services package for the Elpris service.
Contains the price fetcher, normalizer, chart mapper and chart sessions.
"""

from .price_service import price_service, PriceService, PriceChartSession

__all__ = [
    "price_service",
    "PriceService",
    "PriceChartSession",
]
