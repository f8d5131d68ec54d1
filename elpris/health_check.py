"""
Health check module for Docker health checks and monitoring.
Verifies preferences store connectivity and that the primary price API answers.
"""

import asyncio
import sys

import httpx

from elpris.config import settings
from elpris.database.service import db_service
from elpris.logging_config import get_logger, setup_logging
from elpris.markets import get_market

logger = get_logger(__name__)


async def check_price_api(market: str = None) -> bool:
    """
    Check that the market's primary price API host responds at all.
    """
    profile = get_market(market)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout,
                                     headers={"User-Agent": settings.user_agent}) as client:
            response = await client.get(profile.base_urls[0])
        return response.status_code < 500
    except httpx.HTTPError as e:
        logger.error("Price API unreachable", market=profile.code, error=str(e))
        return False


async def health_check() -> bool:
    """
    Perform comprehensive health check of the service.
    """
    try:
        db_healthy = await db_service.health_check()
        api_healthy = await check_price_api()

        return db_healthy and api_healthy

    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return False


async def main():
    """
    Main health check entry point for command line usage.
    """
    setup_logging()
    is_healthy = await health_check()

    if is_healthy:
        logger.info("Health check passed")
        sys.exit(0)
    else:
        logger.error("Health check failed")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
