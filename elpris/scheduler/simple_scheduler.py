"""
Simple hourly refresh scheduler running as an asyncio background task.
Reloads every active chart at the top of each hour so the current-hour
highlight and newly published prices show up without user action.
"""

import asyncio
from datetime import datetime
from typing import Optional

from elpris.config import settings
from elpris.logging_config import get_logger
from elpris.markets import get_market
from elpris.services.price_service import price_service
from elpris.utils.time_utils import get_next_refresh_time, market_now

logger = get_logger(__name__)


class SimpleScheduler:
    """Simple background task scheduler for chart refreshes."""

    def __init__(self, service=None):
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._service = service or price_service

    async def start(self) -> None:
        """Start the scheduler background task."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._scheduler_loop())
        logger.info("Scheduler started", refresh_minute=settings.refresh_minute)

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Scheduler stopped")

    async def _scheduler_loop(self) -> None:
        """Main scheduler loop."""
        while self._running:
            try:
                now = self._now()
                next_run = self._calculate_next_run(now)
                sleep_seconds = (next_run - now).total_seconds()

                if sleep_seconds > 0:
                    logger.debug("Next chart refresh scheduled", next_run=next_run.isoformat(), sleep_seconds=sleep_seconds)
                    await asyncio.sleep(sleep_seconds)

                if not self._running:
                    break

                await self._refresh_job()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Scheduler loop error", error=str(e))
                # Sleep and continue
                await asyncio.sleep(300)  # 5 minutes

    def _now(self) -> datetime:
        """Current time in the default market's time zone."""
        return market_now(get_market())

    def _calculate_next_run(self, now: Optional[datetime] = None) -> datetime:
        """Calculate the next scheduled run time."""
        return get_next_refresh_time(now or self._now(), settings.refresh_minute)

    async def _refresh_job(self) -> None:
        """Execute the chart refresh job."""
        job_start = datetime.now()
        logger.info("Starting scheduled chart refresh")

        try:
            refreshed = await self._service.refresh_all()

            duration = (datetime.now() - job_start).total_seconds()
            logger.info(
                "Completed scheduled chart refresh",
                charts_refreshed=refreshed,
                duration_seconds=duration,
            )

        except Exception as e:
            duration = (datetime.now() - job_start).total_seconds()
            logger.error(
                "Scheduled chart refresh failed",
                error=str(e),
                duration_seconds=duration,
            )

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running


# Global scheduler instance
simple_scheduler = SimpleScheduler()
