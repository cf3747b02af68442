"""
Stats Cache Repository for the event_stats_cache table.

Usage:
    repo = StatsCacheRepository(db)
    data = repo.get_cached_stat("2025txhou", "frc1806", "efficiency_ratings")
    if data is None:
        repo.set_cached_stat("2025txhou", "frc1806", "efficiency_ratings", fresh, expires_in(300))
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete

from app.core.logging import get_logger
from app.models import EventStatsCache
from app.repositories.base import BaseRepository
from app.utils.timezone import to_naive_utc, utc_now

logger = get_logger(__name__)


class StatsCacheRepository(BaseRepository[EventStatsCache]):
    """Read-through cache keyed by (event_key, team_key, stat_type)."""

    def __init__(self, db):
        super().__init__(EventStatsCache, db)

    def get_cached_stat(
        self,
        event_key: str,
        team_key: str,
        stat_type: str,
        now: Optional[datetime] = None,
    ) -> Optional[Any]:
        """Cached payload, or None when missing or expired."""
        now = to_naive_utc(now) if now is not None else utc_now()
        entry = self.where_first(
            EventStatsCache.event_key == event_key,
            EventStatsCache.team_key == team_key,
            EventStatsCache.stat_type == stat_type,
            EventStatsCache.expires_at > now,
        )
        return entry.stat_data if entry is not None else None

    def set_cached_stat(
        self,
        event_key: str,
        team_key: str,
        stat_type: str,
        data: Any,
        expires_at: datetime,
    ) -> EventStatsCache:
        """Store or replace a cached payload. Does not commit."""
        return self.upsert(
            {
                "event_key": event_key,
                "team_key": team_key,
                "stat_type": stat_type,
                "stat_data": data,
                "expires_at": to_naive_utc(expires_at),
                "created_at": utc_now(),
            },
            conflict_keys=["event_key", "team_key", "stat_type"],
        )

    def cleanup_expired_cache(self, now: Optional[datetime] = None) -> int:
        """
        Delete expired entries and commit.

        Returns:
            Number of rows deleted
        """
        now = to_naive_utc(now) if now is not None else utc_now()
        result = self.db.execute(delete(EventStatsCache).where(EventStatsCache.expires_at <= now))
        self.save()
        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Removed {deleted} expired stats cache entries")
        return deleted
