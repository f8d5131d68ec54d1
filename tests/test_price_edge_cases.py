"""
Edge case tests for price models, market profiles and the preferences store.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from conftest import make_raw_points
from elpris.database.service import DatabaseService
from elpris.exceptions import ConfigurationError, DatabaseError
from elpris.markets import DENMARK, NORWAY, SWEDEN, get_market
from elpris.models.price import RGB, DisplayOptions, Preferences, RawPricePoint, SubsidyScheme


class TestNegativePrices:
    """Tests for negative price handling."""

    def test_negative_raw_price_is_valid(self):
        point = make_raw_points([-0.05])[0]
        assert point.price_per_kwh == -0.05

    def test_raw_point_is_immutable(self):
        point = make_raw_points([1.0])[0]
        with pytest.raises(ValidationError):
            point.price_per_kwh = 2.0

    def test_raw_point_parses_offset_timestamps(self):
        point = RawPricePoint(price_per_kwh=0.5, time_start="2025-10-18T13:00:00+02:00")
        assert point.time_start.hour == 13
        assert point.time_end is None


class TestDisplayOptions:
    """Tests for option flags and their mutual exclusion."""

    def test_both_stored_flags_prefer_norgespris(self):
        options = DisplayOptions.from_flags("NO3", True, True, True)
        assert options.subsidy_scheme == SubsidyScheme.NORGESPRIS

    def test_preferences_round_trip(self):
        options = DisplayOptions(zone="DK2", apply_vat=False)
        assert Preferences.from_options(options).to_options() == options

    def test_preferences_flags(self):
        preferences = Preferences.from_options(
            DisplayOptions(zone="NO1", subsidy_scheme=SubsidyScheme.STROMSTOTTE)
        )
        assert preferences.is_stromstotte
        assert not preferences.is_norgespris

    def test_color_channels_are_bounded(self):
        with pytest.raises(ValidationError):
            RGB(red=1.5, green=0.0, blue=0.0)

    def test_darkened(self):
        assert RGB(red=1.0, green=0.5, blue=0.0).darkened(0.6) == RGB(red=0.6, green=0.3, blue=0.0)


class TestMarkets:
    """Tests for market profiles."""

    def test_get_market_is_case_insensitive(self):
        assert get_market("DK").code == "dk"

    def test_unknown_market(self):
        with pytest.raises(ConfigurationError):
            get_market("fi")

    def test_only_norway_offers_schemes(self):
        assert SubsidyScheme.NORGESPRIS in NORWAY.subsidy_schemes
        assert DENMARK.subsidy_schemes == [SubsidyScheme.NONE]
        assert SWEDEN.subsidy_schemes == [SubsidyScheme.NONE]

    def test_stromstotte_threshold_follows_vat(self):
        assert NORWAY.stromstotte_threshold(DisplayOptions(zone="NO3")) == pytest.approx(93.75)
        assert NORWAY.stromstotte_threshold(DisplayOptions(zone="NO4")) == pytest.approx(75.0)

    def test_configured_fallback_hosts(self, monkeypatch):
        from elpris.config import settings

        monkeypatch.setattr(settings, "se_fallback_hosts", ["https://backup.example"])
        profile = get_market("se")

        assert profile.base_urls == ["https://www.elprisetjustnu.se", "https://backup.example"]
        assert SWEDEN.base_urls == ["https://www.elprisetjustnu.se"]


class TestPreferencesStore:
    """Tests for DatabaseService preference handling with a mocked pool."""

    @pytest.fixture
    def connection(self):
        return AsyncMock()

    @pytest.fixture
    def store(self, connection):
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = connection
        service = DatabaseService("postgresql://test")
        service._get_pool = AsyncMock(return_value=pool)
        return service

    @pytest.mark.asyncio
    async def test_load_defaults(self, store, connection):
        connection.fetch.return_value = []

        preferences = await store.load_preferences(NORWAY)

        assert preferences == Preferences(selected_zone="NO3")

    @pytest.mark.asyncio
    async def test_load_stored_values(self, store, connection):
        connection.fetch.return_value = [
            {"key": "selected_zone", "value": "SE1"},
            {"key": "is_mva", "value": "false"},
        ]

        preferences = await store.load_preferences(SWEDEN)

        assert preferences == Preferences(selected_zone="SE1", is_mva=False)

    @pytest.mark.asyncio
    async def test_invalid_stored_zone_falls_back(self, store, connection):
        connection.fetch.return_value = [{"key": "selected_zone", "value": "NO9"}]

        preferences = await store.load_preferences(NORWAY)

        assert preferences.selected_zone == "NO3"

    @pytest.mark.asyncio
    async def test_save_writes_every_key(self, store, connection):
        await store.save_preferences(NORWAY, Preferences(selected_zone="NO2", is_norgespris=True))

        rows = connection.executemany.await_args.args[1]
        assert rows == [
            ("no", "selected_zone", "NO2"),
            ("no", "is_mva", "true"),
            ("no", "is_norgespris", "true"),
            ("no", "is_stromstotte", "false"),
        ]

    @pytest.mark.asyncio
    async def test_read_failure_raises_database_error(self, store, connection):
        connection.fetch.side_effect = OSError("connection reset")

        with pytest.raises(DatabaseError):
            await store.load_preferences(DENMARK)
