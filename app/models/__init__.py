"""
Models for the team event sync service.

Usage:
    from app.models import CurrentEvent, EventMatch

    active = db.query(CurrentEvent).filter(CurrentEvent.is_active.is_(True)).first()
"""
from app.models.models import (
    Base,
    EventConfig,
    CurrentEvent,
    TeamEventStatus,
    EventMatch,
    EventStatsCache,
    WebhookLog,
)

__all__ = [
    "Base",
    "EventConfig",
    "CurrentEvent",
    "TeamEventStatus",
    "EventMatch",
    "EventStatsCache",
    "WebhookLog",
]
