"""
Team history statistics from The Blue Alliance.

Season-independent numbers for the team website: awards, event wins, events
entered and the most recent results. These are fetched live on every call
(they change a handful of times per season) and are not stored locally.

Award types (TBA AwardType enum):
- 0: Chairman's / Impact Award
- 1: Winner
- 2: Finalist
"""
import asyncio
import re
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger
from app.services.tba.client import TbaApiClient, TbaApiError
from app.services.tba.schemas import TbaAward

logger = get_logger(__name__)

AWARD_TYPE_WINNER = 1
AWARD_TYPE_FINALIST = 2


class InvalidAwardPattern(ValueError):
    """The award-name pattern is not a valid regular expression."""


def _by_year(items) -> Dict[int, int]:
    return dict(sorted(Counter(item.year for item in items).items()))


def _dump(awards: List[TbaAward]) -> List[Dict[str, Any]]:
    return [award.model_dump() for award in awards]


class TeamStatsService:
    """
    Team history stats for the tracked team or any other team.

    Every method takes an optional ``team`` (team number or key); when
    omitted the client's configured team is used.
    """

    def __init__(self, client: TbaApiClient):
        self.client = client

    def _team(self, team: Optional[str]) -> Tuple[str, str]:
        """(team_key, team_number) for an override or the configured team."""
        if not team:
            return self.client.team_key, self.client.team_number
        team_key = settings.team_key_for(team)
        return team_key, team_key[len(settings.TEAM_KEY_PREFIX):]

    async def _event_name(self, event_key: str) -> Optional[str]:
        try:
            return (await self.client.get_event(event_key)).name
        except TbaApiError as e:
            logger.warning(f"Failed to fetch event name for {event_key}: {e}")
            return None

    async def get_regional_wins(self, team: Optional[str] = None) -> Dict[str, Any]:
        """Winner and finalist awards."""
        team_key, team_number = self._team(team)
        awards = await self.client.get_team_awards(team_key)
        placed = [a for a in awards if a.award_type in (AWARD_TYPE_WINNER, AWARD_TYPE_FINALIST)]
        return {
            "team_key": team_key,
            "team_number": team_number,
            "winners": sum(1 for a in placed if a.award_type == AWARD_TYPE_WINNER),
            "finalists": sum(1 for a in placed if a.award_type == AWARD_TYPE_FINALIST),
            "total": len(placed),
            "awards": _dump(placed),
        }

    async def get_event_wins(self, team: Optional[str] = None) -> Dict[str, Any]:
        team_key, team_number = self._team(team)
        awards = await self.client.get_team_awards(team_key)
        wins = [a for a in awards if a.award_type == AWARD_TYPE_WINNER]
        return {
            "team_key": team_key,
            "team_number": team_number,
            "count": len(wins),
            "wins": _dump(wins),
        }

    async def get_award_count(self, team: Optional[str] = None) -> Dict[str, Any]:
        team_key, team_number = self._team(team)
        awards = await self.client.get_team_awards(team_key)
        return {
            "team_key": team_key,
            "team_number": team_number,
            "count": len(awards),
            "by_year": _by_year(awards),
        }

    async def get_events_entered(self, team: Optional[str] = None) -> Dict[str, Any]:
        team_key, team_number = self._team(team)
        events = await self.client.get_team_events_simple(team_key)
        years = [e.year for e in events]
        return {
            "team_key": team_key,
            "team_number": team_number,
            "count": len(events),
            "by_year": _by_year(events),
            "first_year": min(years) if years else None,
            "last_year": max(years) if years else None,
        }

    async def get_most_recent_win(self, team: Optional[str] = None) -> Dict[str, Any]:
        team_key, team_number = self._team(team)
        awards = await self.client.get_team_awards(team_key)
        wins = [a for a in awards if a.award_type == AWARD_TYPE_WINNER]
        latest = max(wins, key=lambda a: a.year) if wins else None
        return {
            "team_key": team_key,
            "team_number": team_number,
            "most_recent_win": latest.model_dump() if latest else None,
            "event_name": await self._event_name(latest.event_key) if latest else None,
        }

    async def get_most_recent_award(self, team: Optional[str] = None) -> Dict[str, Any]:
        team_key, team_number = self._team(team)
        awards = await self.client.get_team_awards(team_key)
        latest = max(awards, key=lambda a: a.year) if awards else None
        return {
            "team_key": team_key,
            "team_number": team_number,
            "most_recent_award": latest.model_dump() if latest else None,
            "event_name": await self._event_name(latest.event_key) if latest else None,
        }

    async def get_most_recent_results(
        self,
        team: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        The team's latest finished event with its status, alliances and awards.

        The three detail lookups run concurrently; each is None if its call
        fails.
        """
        team_key, team_number = self._team(team)
        today = today or date.today()

        events = await self.client.get_team_events_simple(team_key)
        past = [e for e in events if date.fromisoformat(e.end_date) < today]
        latest = max(past, key=lambda e: e.start_date) if past else None

        result: Dict[str, Any] = {
            "team_key": team_key,
            "team_number": team_number,
            "event": latest.model_dump() if latest else None,
            "status": None,
            "alliances": None,
            "awards": None,
        }
        if latest is None:
            return result

        status, alliances, awards = await asyncio.gather(
            self.client.get_team_event_status(latest.key, team_key),
            self.client.get_event_alliances(latest.key),
            self.client.get_team_event_awards(latest.key, team_key),
            return_exceptions=True,
        )
        for name, value in (("status", status), ("alliances", alliances), ("awards", awards)):
            if isinstance(value, Exception):
                logger.warning(f"Failed to fetch {name} for {latest.key}: {value}")
                continue
            if name == "status":
                value = value.model_dump() if value is not None else None
            elif name == "awards":
                value = _dump(value)
            result[name] = value
        return result

    async def get_awards_by_type(
        self,
        pattern: str = ".*",
        label: str = "Awards",
        team: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Awards whose name matches a case-insensitive regular expression.

        Raises:
            InvalidAwardPattern: pattern does not compile
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise InvalidAwardPattern(str(e)) from e

        team_key, team_number = self._team(team)
        awards = await self.client.get_team_awards(team_key)
        matching = [a for a in awards if regex.search(a.name)]
        return {
            "team_key": team_key,
            "team_number": team_number,
            "count": len(matching),
            "awards": _dump(matching),
            "pattern": pattern,
            "label": label,
        }
