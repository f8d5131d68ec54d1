"""
Database service using PostgreSQL with asyncpg.
Stores per-market display preferences as key-value rows and handles the
schema setup in one place.
"""

from datetime import datetime
from typing import Dict

import asyncpg

from elpris.config import settings
from elpris.exceptions import DatabaseError
from elpris.logging_config import get_logger
from elpris.markets import MarketProfile
from elpris.models.price import Preferences

logger = get_logger(__name__)

CURRENT_SCHEMA_VERSION = 1

PREFERENCE_KEYS = ("selected_zone", "is_mva", "is_norgespris", "is_stromstotte")


def _to_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")


class DatabaseService:
    """Key-value preferences store backed by PostgreSQL."""

    def __init__(self, database_url: str = None):
        self.database_url = database_url or settings.database_url
        self._pool = None

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create connection pool."""
        if self._pool is None or self._pool.is_closing():
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=1,
                max_size=5,
                command_timeout=30
            )
        return self._pool

    async def close(self):
        """Close database connection pool."""
        if self._pool and not self._pool.is_closing():
            await self._pool.close()

    async def init_database(self) -> None:
        """Initialize database with tables and schema version."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                current_version = await self._get_schema_version(conn)

                if current_version == 0:
                    await self._create_initial_schema(conn)
                    await self._set_schema_version(conn, CURRENT_SCHEMA_VERSION)
                    logger.info("Database initialized with schema version", version=CURRENT_SCHEMA_VERSION)

        except Exception as e:
            logger.error("Failed to initialize database", error=str(e))
            raise DatabaseError(f"Database initialization failed: {e}")

    async def _get_schema_version(self, conn: asyncpg.Connection) -> int:
        """Get current database schema version."""
        try:
            result = await conn.fetchval(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            return result if result else 0
        except asyncpg.UndefinedTableError:
            # Table doesn't exist, this is a new database
            return 0

    async def _set_schema_version(self, conn: asyncpg.Connection, version: int) -> None:
        """Set database schema version."""
        await conn.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES ($1, $2)",
            version, datetime.now()
        )

    async def _create_initial_schema(self, conn: asyncpg.Connection) -> None:
        """Create initial database schema."""
        await conn.execute("""
            CREATE TABLE schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await conn.execute("""
            CREATE TABLE preferences (
                market VARCHAR(8) NOT NULL,
                key VARCHAR(32) NOT NULL,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (market, key)
            )
        """)

        logger.info("Initial database schema created")

    async def get_values(self, market: str) -> Dict[str, str]:
        """Read all stored keys for a market."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT key, value FROM preferences WHERE market = $1",
                    market
                )
            return {row["key"]: row["value"] for row in rows}

        except Exception as e:
            logger.error("Failed to read preferences", market=market, error=str(e))
            raise DatabaseError(f"Failed to read preferences: {e}")

    async def set_values(self, market: str, values: Dict[str, str]) -> None:
        """Write keys for a market, replacing existing values."""
        if not values:
            return

        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.executemany("""
                    INSERT INTO preferences (market, key, value, updated_at)
                    VALUES ($1, $2, $3, CURRENT_TIMESTAMP)
                    ON CONFLICT (market, key) DO UPDATE SET
                        value = EXCLUDED.value,
                        updated_at = EXCLUDED.updated_at
                """, [(market, key, value) for key, value in values.items()])

            logger.debug("Saved preferences", market=market, keys=sorted(values))

        except Exception as e:
            logger.error("Failed to save preferences", market=market, error=str(e))
            raise DatabaseError(f"Failed to save preferences: {e}")

    async def load_preferences(self, profile: MarketProfile) -> Preferences:
        """
        Load preferences for a market, falling back to the market defaults.
        A stored zone the market no longer offers is replaced by the default zone.
        """
        values = await self.get_values(profile.code)

        zone = values.get("selected_zone", profile.default_zone)
        if zone not in profile.zones:
            zone = profile.default_zone

        return Preferences(
            selected_zone=zone,
            is_mva=_to_bool(values.get("is_mva"), True),
            is_norgespris=_to_bool(values.get("is_norgespris"), False),
            is_stromstotte=_to_bool(values.get("is_stromstotte"), False),
        )

    async def save_preferences(self, profile: MarketProfile, preferences: Preferences) -> None:
        """Store all preference keys for a market."""
        await self.set_values(profile.code, {
            "selected_zone": preferences.selected_zone,
            "is_mva": "true" if preferences.is_mva else "false",
            "is_norgespris": "true" if preferences.is_norgespris else "false",
            "is_stromstotte": "true" if preferences.is_stromstotte else "false",
        })

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                result = await conn.fetchval(
                    "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = 'preferences'"
                )

                if result != 1:
                    logger.error("Preferences table not found")
                    return False

            return True

        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False


# Global database service instance
db_service = DatabaseService()
