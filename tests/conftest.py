"""
Test configuration and fixtures for the Elpris API tests.
Contains shared fixtures and test utilities.
"""

import json
from datetime import date, datetime, timedelta
from typing import Dict, List
from unittest.mock import AsyncMock

import httpx
import pytest
import pytz
from fastapi.testclient import TestClient

from elpris.main import create_app
from elpris.markets import DENMARK, NORWAY, SWEDEN
from elpris.models.price import Preferences, RawPricePoint
from elpris.services.price_fetcher import PriceFetcher

OSLO = pytz.timezone("Europe/Oslo")


def make_raw_points(prices: List[float], start: datetime = None, minutes: int = 60) -> List[RawPricePoint]:
    """
    Build consecutive raw price points starting at local midnight.
    """
    start = start or OSLO.localize(datetime(2025, 10, 18, 0, 0, 0))
    return [
        RawPricePoint(
            price_per_kwh=price,
            time_start=start + timedelta(minutes=minutes * i),
            time_end=start + timedelta(minutes=minutes * (i + 1)),
        )
        for i, price in enumerate(prices)
    ]


def make_feed(prices: List[float], currency_field: str = "NOK_per_kWh", minutes: int = 60,
              offset: str = "+02:00") -> List[Dict]:
    """
    Build an upstream JSON feed for 2025-10-18 in the public price API format.
    """
    start = datetime(2025, 10, 18, 0, 0, 0)
    feed = []
    for i, price in enumerate(prices):
        begin = start + timedelta(minutes=minutes * i)
        end = begin + timedelta(minutes=minutes)
        feed.append({
            currency_field: price,
            "EUR_per_kWh": round(price / 11.5, 5),
            "EXR": 11.5,
            "time_start": begin.strftime("%Y-%m-%dT%H:%M:%S") + offset,
            "time_end": end.strftime("%Y-%m-%dT%H:%M:%S") + offset,
        })
    return feed


def mock_transport(routes: Dict[str, object]) -> httpx.MockTransport:
    """
    Transport answering by URL host.

    Values are a status code, a JSON-serializable body (served with 200),
    raw bytes (served with 200), or an exception instance to raise.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        answer = routes.get(request.url.host)
        if answer is None:
            return httpx.Response(404)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer)
        if isinstance(answer, bytes):
            return httpx.Response(200, content=answer)
        return httpx.Response(200, content=json.dumps(answer).encode())

    return httpx.MockTransport(handler)


@pytest.fixture
def test_app():
    """
    Create a test instance of the FastAPI application.
    """
    app = create_app()
    return app


@pytest.fixture
def test_client(test_app):
    """
    Create a test client for the FastAPI application.
    """
    return TestClient(test_app)


@pytest.fixture
def norway():
    return NORWAY


@pytest.fixture
def denmark():
    return DENMARK


@pytest.fixture
def sweden():
    return SWEDEN


@pytest.fixture
def price_date() -> date:
    return date(2025, 10, 18)


@pytest.fixture
def afternoon() -> datetime:
    """Market-local 'now' after tomorrow's prices are published."""
    return OSLO.localize(datetime(2025, 10, 18, 14, 30, 0))


@pytest.fixture
def morning() -> datetime:
    """Market-local 'now' before tomorrow's prices are published."""
    return OSLO.localize(datetime(2025, 10, 18, 9, 15, 0))


@pytest.fixture
def sample_raw_points() -> List[RawPricePoint]:
    """
    A day of hourly prices ranging from 0.5 to 2.8 per kWh.
    """
    prices = [1.0 + (hour * 0.1) for hour in range(24)]
    prices[3] = 0.5
    return make_raw_points(prices)


@pytest.fixture
def mock_store():
    """
    Create a mock preferences store returning market defaults.
    """
    store = AsyncMock()
    store.load_preferences = AsyncMock(
        side_effect=lambda profile: Preferences.from_options(profile.default_options())
    )
    store.save_preferences = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_price_service():
    """
    Create a mock price service for testing.
    """
    mock_service = AsyncMock()
    return mock_service


@pytest.fixture
def mock_db_service():
    """
    Create a mock database service for testing.
    """
    mock_db = AsyncMock()
    return mock_db


@pytest.fixture
def fetcher_for():
    """
    Factory building a PriceFetcher for a profile with canned upstream answers.
    """
    def build(profile, routes: Dict[str, object]) -> PriceFetcher:
        return PriceFetcher(profile, timeout=1.0, transport=mock_transport(routes))

    return build
