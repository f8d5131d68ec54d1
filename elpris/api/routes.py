"""
FastAPI route handlers for the chart API.
Serves market metadata, stateless price charts, the per-market current chart
and stored display preferences.
"""

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from elpris.database.service import db_service
from elpris.exceptions import ConfigurationError, PriceAPIException
from elpris.logging_config import get_logger
from elpris.markets import MARKETS, get_market
from elpris.models.price import ChartView, DateOption, HealthResponse, Preferences, SubsidyScheme
from elpris.scheduler.simple_scheduler import simple_scheduler
from elpris.services.messages import date_label
from elpris.services.price_service import price_service
from elpris.utils.time_utils import available_dates, market_now

logger = get_logger(__name__)

router = APIRouter()


class MarketSummary(BaseModel):
    code: str
    name: str
    zones: List[str]
    default_zone: str
    vat_model: str
    subsidy_schemes: List[SubsidyScheme]
    minor_unit: str


class ChartUpdate(BaseModel):
    """A user action on the current chart. Unset fields are left unchanged."""
    zone: Optional[str] = None
    price_date: Optional[date] = None
    is_mva: Optional[bool] = None
    is_norgespris: Optional[bool] = None
    is_stromstotte: Optional[bool] = None


class ResumeRequest(BaseModel):
    last_pause: Optional[datetime] = Field(default=None, description="When the client was last paused")


def _market_or_404(market: str):
    try:
        return get_market(market)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.
    Reports preferences store connectivity and when each active chart was last refreshed.
    """
    try:
        db_healthy = await db_service.health_check()

        charts = {
            code: {
                "zone": session.options.zone,
                "date": session.selected_date.isoformat() if session.selected_date else None,
                "last_refreshed": session.last_refreshed.isoformat() if session.last_refreshed else None,
                "generation": session.generation,
            }
            for code, session in price_service.sessions.items()
        }

        details = {
            "service": "elpris-api",
            "preferences_store": "ok" if db_healthy else "unavailable",
            "refresh_scheduler": "running" if simple_scheduler.is_running else "stopped",
            "charts": charts,
        }

        return HealthResponse(
            status="healthy" if db_healthy else "degraded",
            timestamp=datetime.now(),
            details=details
        )

    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.now(),
            details={"service": "elpris-api", "error": str(e)}
        )


@router.get("/markets", response_model=List[MarketSummary])
async def list_markets():
    """List supported markets with their zones and pricing schemes."""
    return [
        MarketSummary(
            code=profile.code,
            name=profile.name,
            zones=profile.zones,
            default_zone=profile.default_zone,
            vat_model=profile.vat_model.value,
            subsidy_schemes=profile.subsidy_schemes,
            minor_unit=profile.minor_unit,
        )
        for profile in MARKETS.values()
    ]


@router.get("/markets/{market}/dates", response_model=List[DateOption])
async def get_date_options(market: str):
    """
    Quick-pick dates: yesterday, today and tomorrow, tomorrow being enabled
    only after 13:00 market-local time.
    """
    profile = _market_or_404(market)
    now = market_now(profile)
    return [
        DateOption(label=date_label(key, profile), price_date=option_date, enabled=enabled)
        for key, option_date, enabled in available_dates(now)
    ]


@router.get("/markets/{market}/prices", response_model=ChartView)
async def get_prices(
    market: str,
    price_date: Optional[date] = Query(default=None, alias="date", description="Price date, defaults to today (market-local)"),
    zone: Optional[str] = Query(default=None, description="Price zone, defaults to the market default"),
    vat: bool = Query(default=True, description="VAT toggle (toggle-based VAT markets)"),
    subsidy: SubsidyScheme = Query(default=SubsidyScheme.NONE, description="Pricing scheme"),
):
    """
    Build a chart for explicit options without changing the current chart.

    Absence of data and upstream failures are reported in the view's message.
    """
    _market_or_404(market)
    try:
        return await price_service.get_chart(market, price_date, zone, vat, subsidy)

    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PriceAPIException as e:
        logger.error("Price API error", error=str(e), market=market, zone=zone)
        raise HTTPException(status_code=502, detail="Upstream price error")


@router.get("/markets/{market}/chart", response_model=ChartView)
async def get_current_chart(market: str):
    """Current chart for a market, loading today's prices on first use."""
    _market_or_404(market)
    try:
        return await price_service.update_chart(market)

    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/markets/{market}/chart", response_model=ChartView)
async def update_current_chart(market: str, update: ChartUpdate):
    """
    Apply a zone, date or toggle change to the current chart.
    Enabling Norgespris clears Strømstøtte and vice versa.
    """
    _market_or_404(market)
    try:
        return await price_service.update_chart(
            market,
            zone=update.zone,
            selected_date=update.price_date,
            apply_vat=update.is_mva,
            norgespris=update.is_norgespris,
            stromstotte=update.is_stromstotte,
        )

    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/markets/{market}/refresh", response_model=ChartView)
async def refresh_chart(market: str, request: Optional[ResumeRequest] = None):
    """
    Reload the current chart. With last_pause, reload only when the client
    was away for more than an hour or the clock hour has changed.
    """
    _market_or_404(market)
    try:
        session = await price_service.get_session(market)
        if session.view is None:
            return await price_service.update_chart(market)
        if request is not None and request.last_pause is not None:
            return await session.resume(request.last_pause)
        return await session.refresh()

    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/markets/{market}/preferences", response_model=Preferences)
async def get_preferences(market: str):
    """Stored display preferences for a market."""
    _market_or_404(market)
    return await price_service.get_preferences(market)


@router.put("/markets/{market}/preferences", response_model=Preferences)
async def put_preferences(market: str, preferences: Preferences):
    """Replace stored display preferences for a market."""
    _market_or_404(market)
    try:
        return await price_service.update_preferences(market, preferences)

    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PriceAPIException as e:
        logger.error("Failed to store preferences", error=str(e), market=market)
        raise HTTPException(status_code=500, detail="Internal server error")
