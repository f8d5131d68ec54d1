#!/usr/bin/env python3
"""
Development helper scripts for the Elpris API.
Provides utilities for database setup, manual price fetches and a quick
text rendering of a chart.
"""

import asyncio
import sys
from datetime import date
from pathlib import Path

# Add the project root to the Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from elpris.config import settings
from elpris.database.service import db_service
from elpris.exceptions import PriceAPIException
from elpris.logging_config import setup_logging
from elpris.markets import MARKETS, get_market
from elpris.models.price import SubsidyScheme
from elpris.services.price_fetcher import PriceFetcher
from elpris.services.price_service import price_service


async def init_db():
    """Initialize the database with required tables."""
    print("Initializing database...")
    setup_logging()
    await db_service.init_database()
    await db_service.close()
    print(f"Database initialized at: {settings.database_url}")


async def fetch_prices(market: str, zone: str, target_date: date):
    """Fetch and print raw prices for one zone and date."""
    setup_logging()
    profile = get_market(market)
    fetcher = PriceFetcher(profile)

    try:
        records = await fetcher.fetch_prices(target_date, zone)
    except PriceAPIException as e:
        print(f"Fetch failed: {e}")
        return

    if not records:
        print(f"No prices published for {zone} on {target_date}")
        return

    print(f"\nFound {len(records)} hourly prices for {zone} on {target_date}:")
    print("-" * 60)
    print(f"{'Start':<28} {'Price per kWh':>14}")
    print("-" * 60)
    for record in records:
        print(f"{record.time_start.isoformat():<28} {record.price_per_kwh:>14.5f}")


async def show_chart(market: str, zone: str, target_date: date, subsidy: str):
    """Render a chart as text bars."""
    setup_logging()
    view = await price_service.get_chart(market, target_date, zone, True, SubsidyScheme(subsidy))

    if view.message:
        print(view.message)
        return

    width = 50
    print(view.header)
    print("-" * (width + 20))
    for bar in view.bars:
        length = int(round(bar.scale.bar_fraction * width))
        marker = ">" if bar.is_current_hour else " "
        fill = "-" if bar.scale.is_negative else "#"
        print(f"{marker}{bar.hour_label} {fill * length:<{width}} {bar.price_label:>10}")


async def show_preferences():
    """Display stored preferences for every market."""
    setup_logging()
    for code in MARKETS:
        preferences = await price_service.get_preferences(code)
        print(f"{code}: {preferences.model_dump()}")
    await db_service.close()


def show_config():
    """Display current configuration settings."""
    print("Current Configuration:")
    print("-" * 40)
    print(f"API Host: {settings.api_host}")
    print(f"API Port: {settings.api_port}")
    print(f"Debug Mode: {settings.api_debug}")
    print(f"Database URL: {settings.database_url}")
    print(f"Default Market: {settings.default_market}")
    print(f"HTTP Timeout: {settings.http_timeout}s")
    print(f"Hourly Refresh: {settings.refresh_enabled} (minute {settings.refresh_minute:02d})")
    print(f"Log Level: {settings.log_level}")
    for code in MARKETS:
        profile = get_market(code)
        print(f"{profile.name} ({code}): {', '.join(profile.base_urls)}")


def _parse_date(args, index: int) -> date:
    return date.fromisoformat(args[index]) if len(args) > index else date.today()


def main():
    """Main script entry point with command selection."""
    if len(sys.argv) < 2:
        print("Elpris API Development Scripts")
        print("Usage: python scripts/dev.py <command> [args]")
        print("\nAvailable commands:")
        print("  init-db                                    - Initialize database")
        print("  fetch-prices <market> <zone> [date]        - Fetch and print raw prices")
        print("  show-chart <market> <zone> [date] [scheme] - Render a chart as text")
        print("  show-preferences                           - Display stored preferences")
        print("  show-config                                - Display current configuration")
        return

    command = sys.argv[1]
    args = sys.argv[2:]

    if command == "init-db":
        asyncio.run(init_db())
    elif command == "fetch-prices" and len(args) >= 2:
        asyncio.run(fetch_prices(args[0], args[1].upper(), _parse_date(args, 2)))
    elif command == "show-chart" and len(args) >= 2:
        subsidy = args[3] if len(args) > 3 else SubsidyScheme.NONE.value
        asyncio.run(show_chart(args[0], args[1].upper(), _parse_date(args, 2), subsidy))
    elif command == "show-preferences":
        asyncio.run(show_preferences())
    elif command == "show-config":
        show_config()
    else:
        print(f"Unknown command or missing arguments: {command}")
        print("Run without arguments to see available commands")


if __name__ == "__main__":
    main()
