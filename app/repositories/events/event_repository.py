"""
Event Repository for the current_events table.

Usage:
    repo = EventRepository(db)
    active = repo.get_active_event()
    repo.replace_active_events([(event_values, True), (other_values, False)])
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import desc, update

from app.core.logging import get_logger
from app.models import CurrentEvent
from app.repositories.base import BaseRepository
from app.utils.timezone import utc_now

logger = get_logger(__name__)


class EventRepository(BaseRepository[CurrentEvent]):
    """Repository for cached TBA events and the active-event flag."""

    def __init__(self, db):
        super().__init__(CurrentEvent, db)

    def find_by_key(self, event_key: str) -> Optional[CurrentEvent]:
        return self.where_first(CurrentEvent.event_key == event_key)

    def get_active_event(self) -> Optional[CurrentEvent]:
        """The active event; the latest start date wins if several overlap."""
        return (
            self.query()
            .filter(CurrentEvent.is_active.is_(True))
            .order_by(desc(CurrentEvent.start_date))
            .first()
        )

    def count_active(self) -> int:
        return self.count(CurrentEvent.is_active.is_(True))

    def deactivate_all_events(self) -> int:
        """Clear the active flag on every event. Does not commit."""
        result = self.db.execute(
            update(CurrentEvent)
            .where(CurrentEvent.is_active.is_(True))
            .values(is_active=False, updated_at=utc_now())
        )
        return result.rowcount or 0

    def upsert_event(self, values: Dict[str, Any]) -> CurrentEvent:
        """Insert or update an event by event_key. Does not commit."""
        return self.upsert(values, conflict_keys=["event_key"])

    def replace_active_events(
        self,
        rows: Sequence[Tuple[Dict[str, Any], bool]],
    ) -> List[CurrentEvent]:
        """
        Swap the active set in a single transaction.

        Every event is deactivated, then each row is upserted with its
        computed active flag, then the transaction commits. On any error the
        transaction is rolled back and the previous active set is kept.

        Args:
            rows: (event column values, is_active) pairs

        Returns:
            The upserted events
        """
        try:
            self.deactivate_all_events()
            events = [
                self.upsert_event({**values, "is_active": bool(is_active)})
                for values, is_active in rows
            ]
            self.save()
        except Exception:
            self.rollback()
            raise

        logger.debug(
            f"Replaced active events: {sum(1 for _, active in rows if active)} active of {len(rows)}"
        )
        return events
