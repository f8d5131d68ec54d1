"""
Elpris - Nordic day-ahead electricity spot price charts

A small service that fetches hourly spot prices for Norway, Denmark and
Sweden and turns them into VAT- and subsidy-adjusted 24-bar chart data.

Main components:
- Price fetcher with endpoint fallback and quarter-hour averaging
- Normalizer for VAT, Norgespris and Strømstøtte
- Chart scaling and color mapping
- Per-market chart sessions with stored preferences
- Hourly refresh scheduler
"""

__version__ = "1.0.0"
