"""
Unit tests for the chart service layer.
Tests chart sessions, stale-result handling, option toggles and
preference persistence.
"""

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_raw_points
from elpris.exceptions import ConfigurationError, DatabaseError, NetworkFailure, ParseFailure
from elpris.markets import DENMARK, NORWAY
from elpris.models.price import DisplayOptions, Preferences, SubsidyScheme
from elpris.services.messages import MESSAGES
from elpris.services.price_service import PriceChartSession, PriceService, fetch_cycle


def _fetcher(return_value=None, side_effect=None):
    fetcher = MagicMock()
    fetcher.fetch_prices = AsyncMock(return_value=return_value, side_effect=side_effect)
    return fetcher


class TestFetchCycle:
    """Tests for a single fetch cycle."""

    @pytest.mark.asyncio
    async def test_prices(self, price_date, afternoon):
        raw = make_raw_points([1.0, 2.0])
        result = await fetch_cycle(NORWAY, _fetcher(raw), DisplayOptions(zone="NO3"), price_date, afternoon)
        assert result == (raw, None)

    @pytest.mark.asyncio
    async def test_empty_feed_gives_message(self, price_date, afternoon):
        raw, message = await fetch_cycle(DENMARK, _fetcher([]), DisplayOptions(zone="DK1"),
                                         price_date + timedelta(days=5), afternoon)
        assert raw == []
        assert message == MESSAGES["da"]["future"]

    @pytest.mark.asyncio
    async def test_norway_not_found_for_future_date(self, price_date, afternoon):
        fetcher = _fetcher(side_effect=NetworkFailure("HTTP 404", status_code=404))
        raw, message = await fetch_cycle(NORWAY, fetcher, DisplayOptions(zone="NO3"),
                                         price_date + timedelta(days=2), afternoon)
        assert raw == []
        assert message == MESSAGES["no"]["future"]

    @pytest.mark.asyncio
    async def test_parse_failure_gives_error_message(self, price_date, afternoon):
        fetcher = _fetcher(side_effect=ParseFailure("Empty body"))
        _, message = await fetch_cycle(NORWAY, fetcher, DisplayOptions(zone="NO3"), price_date, afternoon)
        assert message == "En feil oppstod: Empty body"


class TestPriceChartSession:
    """Tests for one market's chart state."""

    @pytest.fixture
    def session(self, afternoon):
        def build(fetcher, options=None):
            return PriceChartSession(NORWAY, options or NORWAY.default_options(),
                                     fetcher=fetcher, clock=lambda: afternoon)
        return build

    @pytest.mark.asyncio
    async def test_load_builds_view(self, session, price_date):
        chart = session(_fetcher(make_raw_points([1.0, 2.0])))

        view = await chart.load(price_date)

        assert view.generation == 1
        assert len(view.bars) == 2
        assert view.message is None
        assert chart.selected_date == price_date

    @pytest.mark.asyncio
    async def test_load_defaults_to_today(self, session, afternoon):
        fetcher = _fetcher(make_raw_points([1.0]))
        view = await session(fetcher).load()

        assert view.price_date == afternoon.date()
        fetcher.fetch_prices.assert_awaited_once_with(afternoon.date(), "NO3")

    @pytest.mark.asyncio
    async def test_load_with_zone(self, session, price_date):
        fetcher = _fetcher(make_raw_points([1.0]))
        chart = session(fetcher)

        view = await chart.load(price_date, "NO4")

        assert view.zone == "NO4"
        assert view.bars[0].original_price == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_unknown_zone_is_rejected(self, session, price_date):
        chart = session(_fetcher([]))
        with pytest.raises(ConfigurationError):
            await chart.load(price_date, "SE3")
        assert chart.generation == 0

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded(self, session, price_date):
        slow_started = asyncio.Event()
        release_slow = asyncio.Event()

        async def fetch_prices(target_date, zone):
            if target_date == price_date:
                slow_started.set()
                await release_slow.wait()
                return make_raw_points([9.0])
            return make_raw_points([1.0, 2.0])

        fetcher = MagicMock()
        fetcher.fetch_prices = fetch_prices
        chart = session(fetcher)

        slow = asyncio.create_task(chart.load(price_date))
        await slow_started.wait()
        newer = await chart.load(price_date - timedelta(days=1))
        release_slow.set()
        stale = await slow

        assert newer.generation == 2
        assert stale is newer
        assert chart.view.price_date == price_date - timedelta(days=1)
        assert len(chart.view.bars) == 2

    @pytest.mark.asyncio
    async def test_toggle_rederives_without_fetching(self, session, price_date):
        fetcher = _fetcher(make_raw_points([0.5, 1.55]))
        chart = session(fetcher)
        await chart.load(price_date)

        view = chart.update_options(stromstotte=True)

        assert fetcher.fetch_prices.await_count == 1
        assert view.options.is_stromstotte
        assert view.bars[1].effective_price == pytest.approx(103.75)
        assert view.threshold_marker is not None

    @pytest.mark.asyncio
    async def test_schemes_are_mutually_exclusive(self, session, price_date):
        chart = session(_fetcher(make_raw_points([1.0])))
        await chart.load(price_date)

        chart.update_options(stromstotte=True)
        view = chart.update_options(norgespris=True)
        assert view.options.subsidy_scheme == SubsidyScheme.NORGESPRIS

        view = chart.update_options(stromstotte=True)
        assert view.options.subsidy_scheme == SubsidyScheme.STROMSTOTTE

        view = chart.update_options(norgespris=False)
        assert view.options.subsidy_scheme == SubsidyScheme.STROMSTOTTE

        view = chart.update_options(stromstotte=False)
        assert view.options.subsidy_scheme == SubsidyScheme.NONE

    def test_toggle_before_first_load(self, session):
        chart = session(_fetcher([]))
        assert chart.update_options(apply_vat=False) is None
        assert chart.options.apply_vat is False

    @pytest.mark.asyncio
    async def test_failed_load_clears_bars(self, session, price_date):
        fetcher = _fetcher(make_raw_points([1.0]))
        chart = session(fetcher)
        await chart.load(price_date)

        fetcher.fetch_prices.side_effect = NetworkFailure("HTTP 500", status_code=500)
        view = await chart.refresh()

        assert view.bars == []
        assert view.message == "En feil oppstod: HTTP 500"

    @pytest.mark.asyncio
    async def test_resume(self, session, price_date, afternoon):
        fetcher = _fetcher(make_raw_points([1.0]))
        chart = session(fetcher)
        await chart.load(price_date)

        await chart.resume(None)
        await chart.resume(afternoon - timedelta(minutes=10))
        assert fetcher.fetch_prices.await_count == 1

        await chart.resume(afternoon - timedelta(hours=2))
        assert fetcher.fetch_prices.await_count == 2


class TestPriceService:
    """Tests for the session registry and preferences."""

    @pytest.fixture
    def fetcher(self):
        return _fetcher(make_raw_points([1.0, 2.0]))

    @pytest.fixture
    def service(self, mock_store, fetcher):
        return PriceService(store=mock_store, fetcher_factory=lambda profile: fetcher)

    @pytest.mark.asyncio
    async def test_session_is_seeded_from_preferences(self, service, mock_store):
        mock_store.load_preferences.side_effect = None
        mock_store.load_preferences.return_value = Preferences(selected_zone="NO5", is_stromstotte=True)

        session = await service.get_session("no")

        assert session.options.zone == "NO5"
        assert session.options.is_stromstotte
        assert await service.get_session("NO") is session

    @pytest.mark.asyncio
    async def test_database_failure_uses_defaults(self, service, mock_store):
        mock_store.load_preferences.side_effect = DatabaseError("down")

        preferences = await service.get_preferences("se")

        assert preferences == Preferences(selected_zone="SE3")

    @pytest.mark.asyncio
    async def test_unsupported_stored_scheme_is_cleared(self, service, mock_store):
        mock_store.load_preferences.side_effect = None
        mock_store.load_preferences.return_value = Preferences(selected_zone="DK2", is_norgespris=True)

        preferences = await service.get_preferences("dk")

        assert preferences.selected_zone == "DK2"
        assert not preferences.is_norgespris

    @pytest.mark.asyncio
    async def test_get_chart_is_stateless(self, service, price_date):
        view = await service.get_chart("no", price_date, "NO2", subsidy=SubsidyScheme.NORGESPRIS)

        assert view.zone == "NO2"
        assert view.midpoint_marker == 0.5
        assert service.sessions == {}

    @pytest.mark.asyncio
    async def test_update_chart_persists_changed_options(self, service, mock_store, price_date):
        await service.update_chart("no", selected_date=price_date)
        mock_store.save_preferences.assert_not_awaited()

        view = await service.update_chart("no", apply_vat=True, norgespris=True)

        assert view.options.is_norgespris
        saved = mock_store.save_preferences.await_args.args[1]
        assert saved == Preferences(selected_zone="NO3", is_norgespris=True)

    @pytest.mark.asyncio
    async def test_update_chart_zone_triggers_fetch(self, service, fetcher, price_date):
        await service.update_chart("no", selected_date=price_date)
        view = await service.update_chart("no", zone="NO1")

        assert view.zone == "NO1"
        assert view.price_date == price_date
        assert fetcher.fetch_prices.await_count == 2

    @pytest.mark.asyncio
    async def test_save_failure_is_not_fatal(self, service, mock_store, price_date):
        mock_store.save_preferences.side_effect = DatabaseError("down")

        view = await service.update_chart("no", selected_date=price_date, stromstotte=True)

        assert view.options.is_stromstotte

    @pytest.mark.asyncio
    async def test_update_preferences_applies_to_session(self, service, mock_store, fetcher, price_date):
        await service.update_chart("no", selected_date=price_date)

        await service.update_preferences("no", Preferences(selected_zone="NO4", is_stromstotte=True))

        session = await service.get_session("no")
        assert session.view.zone == "NO4"
        assert session.options.is_stromstotte
        mock_store.save_preferences.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_preferences_rejects_unknown_zone(self, service):
        with pytest.raises(ConfigurationError):
            await service.update_preferences("se", Preferences(selected_zone="NO1"))

    @pytest.mark.asyncio
    async def test_refresh_all_skips_unloaded_sessions(self, service, fetcher):
        await service.get_session("dk")
        await service.update_chart("no", selected_date=date(2025, 10, 18))

        assert await service.refresh_all() == 1
        assert fetcher.fetch_prices.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_use_shares_session(self, service, mock_store):
        async def slow_preferences(profile):
            await asyncio.sleep(0.01)
            return Preferences.from_options(profile.default_options())

        mock_store.load_preferences.side_effect = slow_preferences

        first, second = await asyncio.gather(service.get_session("no"), service.get_session("no"))

        assert first is second
        assert service.sessions["no"] is first

    @pytest.mark.asyncio
    async def test_rejected_update_leaves_session_unchanged(self, service, mock_store, fetcher, price_date):
        await service.update_chart("no", selected_date=price_date)
        session = await service.get_session("no")
        before = session.options

        with pytest.raises(ConfigurationError):
            await service.update_chart("no", zone="XX", stromstotte=True)

        assert session.options == before
        assert session.options.subsidy_scheme == SubsidyScheme.NONE
        assert session.view.zone == "NO3"
        assert fetcher.fetch_prices.await_count == 1
        mock_store.save_preferences.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsupported_scheme_update_is_rejected(self, service, mock_store, price_date):
        await service.update_chart("se", selected_date=price_date)

        with pytest.raises(ConfigurationError):
            await service.update_chart("se", apply_vat=False, norgespris=True)

        session = await service.get_session("se")
        assert session.options.apply_vat is True
        mock_store.save_preferences.assert_not_awaited()
