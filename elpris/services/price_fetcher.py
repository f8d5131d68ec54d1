"""
Price fetcher - downloads day-ahead prices from the public price APIs.
Handles endpoint fallback, the per-market 404 policy, currency field
selection and reduction of quarter-hourly feeds to hourly points.
"""

from datetime import date
from typing import List, Optional

import httpx
import pandas as pd
from pydantic import ValidationError

from elpris.config import settings
from elpris.exceptions import NetworkFailure, ParseFailure, PriceAPIException
from elpris.logging_config import get_logger
from elpris.markets import MarketProfile, NotFoundPolicy
from elpris.models.price import RawPricePoint

logger = get_logger(__name__)


def select_price(item: dict, currency_fields: List[str]) -> float:
    """
    Return the first currency field present in the record, 0.0 if none is.
    """
    for field in currency_fields:
        value = item.get(field)
        if value is not None:
            return float(value)
    return 0.0


def detect_resolution_minutes(records: List[RawPricePoint]) -> int:
    """
    Interval length of a feed in minutes, judged from its first record.
    Without time_end, a feed longer than 25 records is taken as quarter-hourly.
    """
    if not records:
        return 60

    first = records[0]
    if first.time_end is not None:
        minutes = int((first.time_end - first.time_start).total_seconds() // 60)
        return minutes if 0 < minutes < 60 else 60

    return 15 if len(records) > 25 else 60


def downsample_to_hourly(records: List[RawPricePoint]) -> List[RawPricePoint]:
    """
    Average consecutive sub-hourly records into one point per hour.

    Records are grouped in feed order, without sorting by timestamp. Each group
    keeps its first record's time_start and its last record's time_end.
    """
    chunk_size = 60 // detect_resolution_minutes(records)
    if chunk_size <= 1:
        return records

    prices = pd.Series([record.price_per_kwh for record in records], dtype="float64")
    means = prices.groupby(prices.index // chunk_size).mean()

    hourly = []
    for position, mean_price in enumerate(means):
        first = records[position * chunk_size]
        last = records[min((position + 1) * chunk_size, len(records)) - 1]
        hourly.append(RawPricePoint(
            price_per_kwh=float(mean_price),
            time_start=first.time_start,
            time_end=last.time_end,
        ))

    logger.debug("Downsampled price feed", records=len(records), chunk_size=chunk_size, hourly=len(hourly))
    return hourly


class PriceFetcher:
    """Fetches raw price points for one market."""

    def __init__(self, profile: MarketProfile, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.profile = profile
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def fetch_prices(self, target_date: date, zone: str) -> List[RawPricePoint]:
        """
        Fetch prices for a date and zone, trying each endpoint in order.

        Returns an empty list when the market reports "no data" with a 404.
        Raises the last failure when no endpoint gives a usable answer.
        """
        urls = self.profile.build_urls(target_date, zone)
        last_error: Optional[PriceAPIException] = None
        not_found = False

        async with self._client() as client:
            for url in urls:
                try:
                    items = await self._fetch_json(client, url)
                    records = self._parse_items(items, url)
                except NetworkFailure as e:
                    if e.is_not_found and self.profile.not_found_policy == NotFoundPolicy.EMPTY:
                        not_found = True
                    logger.warning("Price endpoint failed", url=url, status_code=e.status_code, error=str(e))
                    last_error = e
                    continue
                except ParseFailure as e:
                    logger.warning("Price endpoint returned unusable data", url=url, error=str(e))
                    last_error = e
                    continue

                hourly = downsample_to_hourly(records)
                logger.info("Fetched prices",
                            market=self.profile.code,
                            zone=zone,
                            date=target_date.isoformat(),
                            url=url,
                            count=len(hourly))
                return hourly

        if not_found:
            logger.info("No prices published", market=self.profile.code, zone=zone, date=target_date.isoformat())
            return []

        raise last_error

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": settings.user_agent},
            transport=self._transport,
        )

    async def _fetch_json(self, client: httpx.AsyncClient, url: str):
        """Download and decode one price document."""
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise NetworkFailure(f"HTTP error: {e}", url=url) from e

        if not response.is_success:
            raise NetworkFailure(f"HTTP {response.status_code}", status_code=response.status_code, url=url)

        try:
            body = response.json()
        except ValueError as e:
            raise ParseFailure(f"Invalid JSON: {e}", url=url) from e

        if body is None:
            raise ParseFailure("Empty body", url=url)
        if not isinstance(body, list):
            raise ParseFailure(f"Expected a list of prices, got {type(body).__name__}", url=url)
        return body

    def _parse_items(self, items: list, url: str) -> List[RawPricePoint]:
        """Map upstream JSON objects to RawPricePoint records."""
        try:
            return [
                RawPricePoint(
                    price_per_kwh=select_price(item, self.profile.currency_fields),
                    time_start=item["time_start"],
                    time_end=item.get("time_end"),
                )
                for item in items
            ]
        except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as e:
            raise ParseFailure(f"Malformed price record: {e}", url=url) from e
