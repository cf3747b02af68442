"""
Webhook Log Repository for the tba_webhook_logs audit table.

Rows are append-only; only `processed`, `error_message` and `processed_at`
change after insert.
"""
from typing import Any, List, Optional

from sqlalchemy import desc

from app.models import WebhookLog
from app.repositories.base import BaseRepository
from app.utils.timezone import utc_now


def _clip(value: Any, column: str) -> Optional[str]:
    """Fit a payload value to its String column; oversized values are truncated."""
    if value is None:
        return None
    return str(value)[:WebhookLog.__table__.c[column].type.length]


class WebhookLogRepository(BaseRepository[WebhookLog]):
    """Repository for TBA webhook deliveries."""

    def __init__(self, db):
        super().__init__(WebhookLog, db)

    def log_webhook(
        self,
        message_type: str,
        message_data: Any,
        team_key: Optional[str] = None,
        event_key: Optional[str] = None,
        match_key: Optional[str] = None,
    ) -> WebhookLog:
        """Record a delivery and commit so it survives a failed dispatch."""
        entry = self.create(
            message_type=_clip(message_type, "message_type"),
            message_data=message_data,
            team_key=_clip(team_key, "team_key"),
            event_key=_clip(event_key, "event_key"),
            match_key=_clip(match_key, "match_key"),
            processed=False,
            received_at=utc_now(),
        )
        self.save()
        self.refresh(entry)
        return entry

    def mark_processed(self, log_id: int, error_message: Optional[str] = None) -> Optional[WebhookLog]:
        """Flag a delivery as handled, with any failure reasons, and commit."""
        entry = self.find_by_id(log_id)
        if entry is None:
            return None
        entry.processed = True
        entry.error_message = error_message
        entry.processed_at = utc_now()
        self.save()
        return entry

    def list_logs(self, limit: int = 50, offset: int = 0) -> List[WebhookLog]:
        """Most recent deliveries first."""
        return (
            self.query()
            .order_by(desc(WebhookLog.received_at), desc(WebhookLog.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
