"""
Data models package for the Elpris service.
Contains Pydantic models for price data and chart responses.
"""

from .price import (
    BarDirection,
    BarScale,
    ChartAggregates,
    ChartBar,
    ChartView,
    DateOption,
    DisplayOptions,
    HealthResponse,
    NormalizedPricePoint,
    NorgesprisSplit,
    Preferences,
    RawPricePoint,
    RGB,
    SubsidyScheme,
    TextColor,
)

__all__ = [
    "BarDirection",
    "BarScale",
    "ChartAggregates",
    "ChartBar",
    "ChartView",
    "DateOption",
    "DisplayOptions",
    "HealthResponse",
    "NormalizedPricePoint",
    "NorgesprisSplit",
    "Preferences",
    "RawPricePoint",
    "RGB",
    "SubsidyScheme",
    "TextColor",
]
