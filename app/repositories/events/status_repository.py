"""
Team Status Repository for the team_event_status table.

Usage:
    repo = TeamStatusRepository(db)
    repo.upsert_status({"team_key": "frc1806", "event_key": "2025txhou", ...})
    db.commit()
"""
from typing import Any, Dict, Optional

from app.models import TeamEventStatus
from app.repositories.base import BaseRepository

RATING_FIELDS = ("opr", "dpr", "ccwm")


class TeamStatusRepository(BaseRepository[TeamEventStatus]):
    """Repository for a team's per-event status."""

    def __init__(self, db):
        super().__init__(TeamEventStatus, db)

    def get_status(self, team_key: str, event_key: str) -> Optional[TeamEventStatus]:
        return self.where_first(
            TeamEventStatus.team_key == team_key,
            TeamEventStatus.event_key == event_key,
        )

    def upsert_status(self, values: Dict[str, Any], update_ratings: bool = True) -> TeamEventStatus:
        """
        Insert or update the status row for (team_key, event_key). Does not commit.

        Args:
            values: Column values
            update_ratings: When False, existing opr/dpr/ccwm are preserved on
                update (ratings could not be fetched this pass)
        """
        conflict_keys = ["team_key", "event_key"]
        update_fields = [
            k for k in values
            if k not in conflict_keys and (update_ratings or k not in RATING_FIELDS)
        ]
        return self.upsert(values, conflict_keys=conflict_keys, update_fields=update_fields)
