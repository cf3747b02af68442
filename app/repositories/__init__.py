"""
Repository layer for data access.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)
4. Consistent interface for data operations

Usage:
    from app.repositories import EventRepository, MatchRepository
    from app.core.database import session_factory

    db = session_factory()
    event = EventRepository(db).get_active_event()
    db.close()
"""

from app.repositories.base import BaseRepository

# Event tracking repositories
from app.repositories.events import (
    DEFAULT_CONFIG,
    ConfigRepository,
    EventRepository,
    MatchRepository,
    TeamStatusRepository,
    StatsCacheRepository,
    WebhookLogRepository,
)

__all__ = [
    "BaseRepository",
    "ConfigRepository",
    "DEFAULT_CONFIG",
    "EventRepository",
    "MatchRepository",
    "TeamStatusRepository",
    "StatsCacheRepository",
    "WebhookLogRepository",
]
