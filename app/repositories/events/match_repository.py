"""
Match Repository for the event_matches table.

Ordering and the upcoming/completed predicates live in
app.services.events.match_ordering; this repository applies them to the
stored rows. JSON team-key containment is evaluated in Python so the same
queries run on PostgreSQL and SQLite.

Usage:
    repo = MatchRepository(db)
    schedule = repo.get_matches("2025txhou", team_key="frc1806")
    upcoming = repo.get_next_match("2025txhou", "frc1806")
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models import EventMatch
from app.repositories.base import BaseRepository
from app.services.events import match_ordering
from app.utils.timezone import epoch_seconds


class MatchRepository(BaseRepository[EventMatch]):
    """Repository for event matches."""

    def __init__(self, db):
        super().__init__(EventMatch, db)

    def find_by_key(self, match_key: str) -> Optional[EventMatch]:
        return self.where_first(EventMatch.match_key == match_key)

    def upsert_match(self, values: Dict[str, Any]) -> EventMatch:
        """Insert or update a match by match_key. Does not commit."""
        return self.upsert(values, conflict_keys=["match_key"])

    def get_matches(self, event_key: str, team_key: Optional[str] = None) -> List[EventMatch]:
        """
        Matches of an event in schedule order.

        Args:
            event_key: e.g. "2025txhou"
            team_key: Restrict to matches where this team is on either alliance
        """
        matches = self.where(EventMatch.event_key == event_key)
        if team_key:
            matches = [m for m in matches if match_ordering.involves_team(m, team_key)]
        return match_ordering.sort_matches(matches)

    def get_next_match(
        self,
        event_key: str,
        team_key: str,
        now: Optional[datetime] = None,
    ) -> Optional[EventMatch]:
        return match_ordering.find_next_match(
            self.get_matches(event_key, team_key),
            epoch_seconds(now) if now is not None else None,
        )

    def get_last_match(self, event_key: str, team_key: str) -> Optional[EventMatch]:
        return match_ordering.find_last_match(self.get_matches(event_key, team_key))
