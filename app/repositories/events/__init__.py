"""Event tracking repositories."""

from app.repositories.events.config_repository import ConfigRepository, DEFAULT_CONFIG
from app.repositories.events.event_repository import EventRepository
from app.repositories.events.match_repository import MatchRepository
from app.repositories.events.status_repository import TeamStatusRepository
from app.repositories.events.stats_cache_repository import StatsCacheRepository
from app.repositories.events.webhook_log_repository import WebhookLogRepository

__all__ = [
    "ConfigRepository",
    "DEFAULT_CONFIG",
    "EventRepository",
    "MatchRepository",
    "TeamStatusRepository",
    "StatsCacheRepository",
    "WebhookLogRepository",
]
