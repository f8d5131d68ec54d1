"""
Price chart service - keeps the current chart per market.
Each market has one session holding the selected options, the last applied
dataset and its derived view. Loads are tagged with a generation number so
a slow, superseded fetch never overwrites a newer result.
"""

from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple

from elpris.database.service import db_service
from elpris.exceptions import DatabaseError, PriceAPIException
from elpris.logging_config import get_logger
from elpris.markets import MarketProfile, get_market
from elpris.models.price import ChartView, DisplayOptions, Preferences, RawPricePoint, SubsidyScheme
from elpris.services.chart import build_chart_view
from elpris.services.messages import select_absence_message, select_error_message
from elpris.services.price_fetcher import PriceFetcher
from elpris.utils.time_utils import market_now, should_refresh_on_resume

logger = get_logger(__name__)


async def fetch_cycle(profile: MarketProfile, fetcher: PriceFetcher, options: DisplayOptions,
                      selected_date: date, now: datetime) -> Tuple[List[RawPricePoint], Optional[str]]:
    """
    One fetch cycle: the raw prices and the message to show instead of a chart, if any.
    Fetch errors end the cycle with a message; nothing is retried.
    """
    url = profile.build_urls(selected_date, options.zone)[0]

    try:
        raw = await fetcher.fetch_prices(selected_date, options.zone)
    except PriceAPIException as e:
        logger.warning("Price fetch failed",
                       market=profile.code,
                       zone=options.zone,
                       date=selected_date.isoformat(),
                       error=str(e))
        return [], select_error_message(e, selected_date, now, profile, options.zone, url)

    if not raw:
        return [], select_absence_message(selected_date, now, profile, options.zone, url)
    return raw, None


class PriceChartSession:
    """Current chart state for one market."""

    def __init__(self, profile: MarketProfile, options: DisplayOptions,
                 fetcher: Optional[PriceFetcher] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.profile = profile
        self.options = options
        self.selected_date: Optional[date] = None
        self.view: Optional[ChartView] = None
        self.last_refreshed: Optional[datetime] = None
        self._fetcher = fetcher or PriceFetcher(profile)
        self._clock = clock or (lambda: market_now(profile))
        self._generation = 0
        self._raw: List[RawPricePoint] = []
        self._loaded_zone: Optional[str] = None
        self._loaded_date: Optional[date] = None
        self._message: Optional[str] = None

    @property
    def generation(self) -> int:
        """Number of the most recently issued load."""
        return self._generation

    def now(self) -> datetime:
        return self._clock()

    async def load(self, selected_date: Optional[date] = None, zone: Optional[str] = None) -> Optional[ChartView]:
        """
        Fetch prices for a date and zone and make them the current dataset.

        The result is applied only if no newer load was issued while this one
        was in flight. Returns the current view either way.
        """
        options = self.options.with_zone(zone) if zone else self.options
        self.profile.validate_options(options)
        now = self.now()
        selected_date = selected_date or now.date()

        self.options = options
        self.selected_date = selected_date
        self._generation += 1
        generation = self._generation

        raw, message = await fetch_cycle(self.profile, self._fetcher, options, selected_date, now)

        if generation != self._generation:
            logger.debug("Discarding stale price result",
                         market=self.profile.code,
                         generation=generation,
                         latest=self._generation)
            return self.view

        self._raw = raw
        self._message = message
        self._loaded_zone = options.zone
        self._loaded_date = selected_date
        self.last_refreshed = now
        self.view = self._derive(generation)
        return self.view

    def update_options(self, apply_vat: Optional[bool] = None, norgespris: Optional[bool] = None,
                       stromstotte: Optional[bool] = None) -> Optional[ChartView]:
        """
        Change VAT or pricing scheme and rebuild the view from the current dataset.
        """
        options = self.options.with_toggles(apply_vat, norgespris, stromstotte)
        self.profile.validate_options(options)
        self.options = options

        if self._loaded_date is not None:
            self.view = self._derive(self.view.generation if self.view else self._generation)
        return self.view

    async def refresh(self) -> Optional[ChartView]:
        """Reload the current date and zone."""
        return await self.load(self.selected_date, self.options.zone)

    async def resume(self, last_pause: Optional[datetime]) -> Optional[ChartView]:
        """Reload when a client returns after an hour change or a long pause."""
        if last_pause is not None:
            last_pause = market_now(self.profile, last_pause)
        if should_refresh_on_resume(last_pause, self.now()):
            return await self.refresh()
        return self.view

    def _derive(self, generation: int) -> ChartView:
        options = self.options.with_zone(self._loaded_zone)
        return build_chart_view(
            self.profile,
            self._raw,
            options,
            self._loaded_date,
            self.now(),
            generation,
            self._message,
        )


class PriceService:
    """Registry of chart sessions with preference persistence."""

    def __init__(self, store=None, fetcher_factory: Callable[[MarketProfile], PriceFetcher] = None):
        self._store = store or db_service
        self._fetcher_factory = fetcher_factory or PriceFetcher
        self._sessions: Dict[str, PriceChartSession] = {}

    @property
    def sessions(self) -> Dict[str, PriceChartSession]:
        return dict(self._sessions)

    async def get_session(self, market: Optional[str] = None) -> PriceChartSession:
        """Get or create the session for a market, seeded from stored preferences."""
        profile = get_market(market)
        session = self._sessions.get(profile.code)
        if session is None:
            preferences = await self.get_preferences(profile.code)
            # Another request may have created the session while preferences loaded
            session = self._sessions.get(profile.code)
            if session is None:
                session = PriceChartSession(
                    profile,
                    preferences.to_options(),
                    fetcher=self._fetcher_factory(profile),
                )
                self._sessions[profile.code] = session
        return session

    async def get_chart(self, market: Optional[str], selected_date: Optional[date], zone: Optional[str],
                        apply_vat: bool = True, subsidy: SubsidyScheme = SubsidyScheme.NONE) -> ChartView:
        """Build a chart for explicit options without touching any session."""
        profile = get_market(market)
        options = DisplayOptions(zone=zone or profile.default_zone, apply_vat=apply_vat, subsidy_scheme=subsidy)
        profile.validate_options(options)
        now = market_now(profile)
        selected_date = selected_date or now.date()
        raw, message = await fetch_cycle(profile, self._fetcher_factory(profile), options, selected_date, now)
        return build_chart_view(profile, raw, options, selected_date, now, message=message)

    async def update_chart(self, market: Optional[str] = None, zone: Optional[str] = None,
                           selected_date: Optional[date] = None, apply_vat: Optional[bool] = None,
                           norgespris: Optional[bool] = None,
                           stromstotte: Optional[bool] = None) -> Optional[ChartView]:
        """
        Apply a user action to a market's chart.

        VAT and scheme toggles re-derive the current dataset; a new zone or
        date, or a chart never loaded, triggers a fetch. Changed options are
        written to the preferences store.
        """
        session = await self.get_session(market)
        previous = session.options

        # Reject the whole action before any of it reaches the session
        candidate = previous.with_toggles(apply_vat, norgespris, stromstotte)
        session.profile.validate_options(candidate.with_zone(zone) if zone else candidate)

        if candidate != previous:
            session.update_options(apply_vat, norgespris, stromstotte)

        needs_load = (
            session.view is None
            or (zone is not None and zone != session.options.zone)
            or (selected_date is not None and selected_date != session.selected_date)
        )
        view = session.view
        if needs_load:
            view = await session.load(selected_date or session.selected_date, zone)

        if session.options != previous:
            await self._save_preferences(session.profile, Preferences.from_options(session.options))
        return view

    async def refresh_all(self) -> int:
        """Reload every session that has shown a chart. Returns the number refreshed."""
        refreshed = 0
        for session in list(self._sessions.values()):
            if session.selected_date is None:
                continue
            await session.refresh()
            refreshed += 1
        return refreshed

    async def get_preferences(self, market: Optional[str] = None) -> Preferences:
        """Stored preferences for a market, or its defaults when the store is unavailable."""
        profile = get_market(market)
        try:
            preferences = await self._store.load_preferences(profile)
        except DatabaseError as e:
            logger.warning("Using default preferences", market=profile.code, error=str(e))
            preferences = Preferences.from_options(profile.default_options())

        if preferences.to_options().subsidy_scheme not in profile.subsidy_schemes:
            preferences = preferences.model_copy(update={"is_norgespris": False, "is_stromstotte": False})
        return preferences

    async def update_preferences(self, market: Optional[str], preferences: Preferences) -> Preferences:
        """Validate and store preferences, and apply them to a live session."""
        profile = get_market(market)
        options = preferences.to_options()
        profile.validate_options(options)
        preferences = Preferences.from_options(options)

        await self._store.save_preferences(profile, preferences)

        session = self._sessions.get(profile.code)
        if session is not None:
            zone_changed = options.zone != session.options.zone
            session.update_options(options.apply_vat, options.is_norgespris, options.is_stromstotte)
            if zone_changed and session.selected_date is not None:
                await session.load(session.selected_date, options.zone)
            elif zone_changed:
                session.options = session.options.with_zone(options.zone)
        return preferences

    async def _save_preferences(self, profile: MarketProfile, preferences: Preferences) -> None:
        try:
            await self._store.save_preferences(profile, preferences)
        except DatabaseError as e:
            logger.error("Failed to persist preferences", market=profile.code, error=str(e))


# Global price service instance
price_service = PriceService()
