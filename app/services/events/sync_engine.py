"""Event sync engine for keeping the tracked team's event data current.

This engine coordinates:
- Active event detection from the team's season schedule
- Team status and efficiency rating refresh for the active event
- Match schedule and result ingestion for the active event
- TBA webhook handling
- The event summary served to the website (next/last match, turnaround,
  ranking points)

Every public sync operation returns a SyncResult instead of raising. A failed
pass rolls back its session and leaves previously stored data untouched; the
next scheduled pass tries again.

Sync Schedule (see app.core.scheduler):
- run_event_check: every event_check_interval seconds (default hourly)
- update_event_data: every match_check_interval seconds (default 5 min)
- cleanup_expired_cache: daily at 02:00
"""
import asyncio
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_sync_run, record_webhook
from app.models import EventConfig, EventMatch
from app.repositories import (
    ConfigRepository,
    EventRepository,
    MatchRepository,
    StatsCacheRepository,
    TeamStatusRepository,
    WebhookLogRepository,
)
from app.services.events import match_ordering
from app.services.events.ranking_points import get_team_ranking_points
from app.services.tba.client import TbaApiClient, TbaApiError
from app.services.tba.schemas import TbaEvent, TbaMatch, TbaTeamEventStatus
from app.utils.timezone import (
    EventWindow, epoch_seconds, event_window, expires_in, to_naive_utc, utc_now,
)

logger = get_logger(__name__)

EFFICIENCY_RATINGS = "efficiency_ratings"

# message_type -> engine operations, run in order
WEBHOOK_HANDLERS = {
    "upcoming_match": ("update_event_matches", "update_team_event_status"),
    "match_score": ("update_event_matches", "update_team_event_status"),
    "alliance_selection": ("update_team_event_status",),
    "schedule_updated": ("update_event_matches",),
}


@dataclass
class SyncResult:
    """Outcome of one sync operation."""
    operation: str
    success: bool = True
    error: Optional[str] = None
    records: int = 0
    has_active_event: bool = False
    skipped: bool = False
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EventSyncEngine:
    """
    Syncs the tracked team's event data from TBA into the local store.

    Constructed per unit of work (scheduler job, webhook, HTTP request) with
    its own session; the TBA client is shared.
    """

    def __init__(self, db: Session, client: TbaApiClient):
        """
        Initialize the sync engine.

        Args:
            db: SQLAlchemy database session
            client: Shared TBA API client
        """
        self.db = db
        self.client = client
        self.config = ConfigRepository(db)
        self.events = EventRepository(db)
        self.matches = MatchRepository(db)
        self.statuses = TeamStatusRepository(db)
        self.stats_cache = StatsCacheRepository(db)
        self.webhook_logs = WebhookLogRepository(db)

    @property
    def team_key(self) -> str:
        return self.client.team_key

    async def _run(self, operation: str, work: Callable[[], Awaitable[SyncResult]]) -> SyncResult:
        """Time an operation, turn any exception into a failed result and record metrics."""
        started = time.perf_counter()
        try:
            result = await work()
        except Exception as e:
            self.db.rollback()
            logger.error(f"{operation} failed: {e}", exc_info=not isinstance(e, TbaApiError))
            result = SyncResult(operation, success=False, error=str(e) or type(e).__name__)

        elapsed = time.perf_counter() - started
        result.duration_ms = int(elapsed * 1000)
        record_sync_run(operation, result.success, result.skipped, elapsed)
        return result

    def _skipped(self, operation: str) -> SyncResult:
        logger.debug(f"{operation}: no active event, skipping")
        return SyncResult(operation, skipped=True)

    # ========================================================================
    # Sync operations
    # ========================================================================

    async def check_for_active_events(self, now: Optional[datetime] = None) -> SyncResult:
        """
        Refresh the team's events for the season and recompute the active set.

        An event is active when "now" falls between local midnight of its
        start date and local end-of-day of its end date, in the event's own
        timezone. The active set is replaced in a single transaction.
        """
        async def work() -> SyncResult:
            current = to_naive_utc(now) if now is not None else utc_now()
            events = await self.client.get_team_events(current.year)

            rows = []
            for event in events:
                window = event_window(event.start_date, event.end_date, event.timezone)
                is_active = window.contains(current)
                if is_active:
                    logger.info(f"Active event detected: {event.name} ({event.key})")
                rows.append((self._event_values(event, window), is_active))

            self.events.replace_active_events(rows)
            has_active = any(is_active for _, is_active in rows)
            logger.info(
                f"Event check complete: {len(rows)} events for {self.team_key}, "
                f"active={has_active}"
            )
            return SyncResult("check_for_active_events", records=len(rows), has_active_event=has_active)

        return await self._run("check_for_active_events", work)

    async def update_team_event_status(self) -> SyncResult:
        """Refresh the team's ranking, record and efficiency ratings at the active event."""
        async def work() -> SyncResult:
            event = self.events.get_active_event()
            if event is None:
                return self._skipped("update_team_event_status")
            event_key = event.event_key
            team_key = self.team_key

            status = await self.client.get_team_event_status(event_key)
            ratings = await self._get_efficiency_ratings(event_key, team_key)

            values: Dict[str, Any] = {"team_key": team_key, "event_key": event_key}
            if status is not None:
                values.update(self._status_values(status))
            if ratings is not None:
                values.update(ratings)

            if status is None and ratings is None:
                logger.info(f"No status published yet for {team_key} at {event_key}")
                return SyncResult("update_team_event_status", has_active_event=True)

            self.statuses.upsert_status(values, update_ratings=ratings is not None)
            self.db.commit()
            return SyncResult("update_team_event_status", records=1, has_active_event=True)

        return await self._run("update_team_event_status", work)

    async def update_event_matches(self) -> SyncResult:
        """Upsert every match of the active event."""
        async def work() -> SyncResult:
            event = self.events.get_active_event()
            if event is None:
                return self._skipped("update_event_matches")
            event_key = event.event_key

            matches = await self.client.get_event_matches(event_key)
            for match in matches:
                self.matches.upsert_match(self._match_values(match))
            self.db.commit()

            logger.info(f"Updated {len(matches)} matches for event {event_key}")
            return SyncResult("update_event_matches", records=len(matches), has_active_event=True)

        return await self._run("update_event_matches", work)

    async def update_event_data(self) -> SyncResult:
        """Refresh status and matches of the active event concurrently."""
        async def work() -> SyncResult:
            if self.events.get_active_event() is None:
                return self._skipped("update_event_data")

            results = await asyncio.gather(
                self.update_team_event_status(),
                self.update_event_matches(),
            )
            errors = [f"{r.operation}: {r.error}" for r in results if not r.success]
            return SyncResult(
                "update_event_data",
                success=not errors,
                error="; ".join(errors) or None,
                records=sum(r.records for r in results),
                has_active_event=True,
            )

        return await self._run("update_event_data", work)

    async def run_event_check(self, now: Optional[datetime] = None) -> SyncResult:
        """Active-event check, followed by an immediate data refresh if an event is active."""
        async def work() -> SyncResult:
            check = await self.check_for_active_events(now)
            if not check.success or not check.has_active_event:
                return SyncResult(
                    "run_event_check",
                    success=check.success,
                    error=check.error,
                    records=check.records,
                )

            data = await self.update_event_data()
            return SyncResult(
                "run_event_check",
                success=data.success,
                error=data.error,
                records=check.records + data.records,
                has_active_event=True,
            )

        return await self._run("run_event_check", work)

    async def cleanup_expired_cache(self) -> SyncResult:
        async def work() -> SyncResult:
            deleted = self.stats_cache.cleanup_expired_cache()
            return SyncResult("cleanup_expired_cache", records=deleted)

        return await self._run("cleanup_expired_cache", work)

    async def _get_efficiency_ratings(self, event_key: str, team_key: str) -> Optional[Dict[str, Optional[float]]]:
        """
        OPR/DPR/CCWM for the team, read through the stats cache.

        Returns:
            Ratings dict (values None when TBA has no rating for the team),
            or None when ratings could not be fetched at all
        """
        cached = self.stats_cache.get_cached_stat(event_key, team_key, EFFICIENCY_RATINGS)
        if cached is not None:
            return cached

        try:
            oprs = await self.client.get_event_oprs(event_key)
        except TbaApiError as e:
            logger.info(f"Efficiency ratings not available for {event_key}: {e}")
            return None
        except ValidationError as e:
            logger.warning(f"Malformed efficiency ratings for {event_key}: {e}")
            return None
        if oprs is None:
            return None

        ratings = oprs.for_team(team_key)
        self.stats_cache.set_cached_stat(
            event_key, team_key, EFFICIENCY_RATINGS, ratings,
            expires_in(settings.STATS_CACHE_TTL_SECONDS),
        )
        self.db.commit()
        return ratings

    # ========================================================================
    # Webhooks
    # ========================================================================

    async def process_webhook(self, payload: Dict[str, Any]) -> SyncResult:
        """
        Record a TBA webhook delivery and refresh the data it concerns.

        The delivery is logged before dispatch; the log row is then marked
        processed with any failure reasons. Unrecognised message types are
        logged and ignored.
        """
        async def work() -> SyncResult:
            message_type = str(payload.get("message_type") or "unknown")
            message_data = payload.get("message_data")
            if not isinstance(message_data, dict):
                message_data = {}
            match = message_data.get("match") if isinstance(message_data.get("match"), dict) else {}

            record_webhook(message_type)
            entry = self.webhook_logs.log_webhook(
                message_type=message_type,
                message_data=payload,
                team_key=payload.get("team_key") or message_data.get("team_key"),
                event_key=(
                    payload.get("event_key") or message_data.get("event_key") or match.get("event_key")
                ),
                match_key=payload.get("match_key") or message_data.get("match_key") or match.get("key"),
            )
            log_id = entry.id

            handlers = WEBHOOK_HANDLERS.get(message_type)
            if handlers is None:
                logger.info(f"Ignoring TBA webhook of type '{message_type}'")
                self.webhook_logs.mark_processed(log_id)
                return SyncResult("process_webhook", records=0)

            logger.info(f"Processing TBA webhook '{message_type}' (log {log_id})")
            errors = []
            records = 0
            for name in handlers:
                result = await getattr(self, name)()
                records += result.records
                if not result.success:
                    errors.append(f"{name}: {result.error}")

            error_message = "; ".join(errors) or None
            self.webhook_logs.mark_processed(log_id, error_message)
            return SyncResult(
                "process_webhook",
                success=not errors,
                error=error_message,
                records=records,
            )

        return await self._run("process_webhook", work)

    # ========================================================================
    # Read side
    # ========================================================================

    def get_event_summary(self, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """
        Summary of the active event for the team, or None when no event is active.

        Includes the next and last match, the turnaround to the match after
        next (with the alliance color the team will be on), and the ranking
        points the team earned in its last match.
        """
        try:
            event = self.events.get_active_event()
            if event is None:
                return None

            team_key = self.team_key
            status = self.statuses.get_status(team_key, event.event_key)
            team_matches = self.matches.get_matches(event.event_key, team_key)
            next_match = match_ordering.find_next_match(
                team_matches, epoch_seconds(now) if now is not None else None
            )
            last_match = match_ordering.find_last_match(team_matches)

            summary: Dict[str, Any] = {
                "event": event.to_dict(),
                "team_status": status.to_dict() if status else None,
                "next_match": next_match.to_dict() if next_match else None,
                "last_match": last_match.to_dict() if last_match else None,
                "team_key": team_key,
                "team_number": self.client.team_number,
                "last_match_ranking_points": None,
            }

            if next_match is not None:
                turnaround = match_ordering.compute_turnaround(team_matches, next_match, team_key)
                if turnaround is not None:
                    summary["turnaround_time"] = turnaround.seconds
                    summary["turnaround_alliance_color"] = turnaround.alliance_color

            if last_match is not None:
                points = get_team_ranking_points(
                    last_match.score_breakdown,
                    event.year,
                    team_key,
                    last_match.team_keys("red"),
                    last_match.team_keys("blue"),
                )
                if points is not None:
                    summary["last_match_ranking_points"] = points.to_dict()

            return summary
        except Exception as e:
            logger.error(f"Error building event summary: {e}", exc_info=True)
            return None

    def get_match_schedule(self) -> List[EventMatch]:
        """The team's matches at the active event in schedule order."""
        try:
            event = self.events.get_active_event()
            if event is None:
                return []
            return self.matches.get_matches(event.event_key, self.team_key)
        except Exception as e:
            logger.error(f"Error getting match schedule: {e}", exc_info=True)
            return []

    def get_system_status(self) -> Dict[str, Any]:
        """Configuration and freshness overview for the admin dashboard."""
        event = self.events.get_active_event()
        status = self.statuses.get_status(self.team_key, event.event_key) if event else None

        last_update = None
        if status is not None:
            last_update = status.updated_at
        elif event is not None:
            last_update = event.updated_at

        return {
            "enabled": self.config.is_event_display_enabled(),
            "api_key_configured": bool(self.config.get_value("tba_api_key")),
            "team_number": self.client.team_number,
            "team_key": self.team_key,
            "has_active_event": event is not None,
            "active_event": {
                "event_key": event.event_key,
                "name": event.name,
                "start_date": event.start_date.isoformat(),
                "end_date": event.end_date.isoformat(),
            } if event else None,
            "last_update": last_update.isoformat() if last_update else None,
        }

    # ========================================================================
    # Configuration
    # ========================================================================

    def apply_config_update(
        self,
        key: str,
        value: Optional[str],
        description: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> EventConfig:
        """
        Persist a config entry; the API key and team number also rotate the client.

        Raises:
            ValueError: team_number is not a positive integer
        """
        if key == "team_number":
            value = str(value or "").strip()
            if not value.isdigit() or int(value) <= 0:
                raise ValueError(f"Invalid team number: {value!r}")

        entry = self.config.set_config(key, value, description, updated_by)
        self.db.commit()

        if key == "tba_api_key":
            self.client.update_api_key(value or "")
        elif key == "team_number":
            self.client.update_team_number(value)

        logger.info(f"Config '{key}' updated by {updated_by or 'system'}")
        return entry

    # ========================================================================
    # Mapping TBA payloads to rows
    # ========================================================================

    @staticmethod
    def _event_values(event: TbaEvent, window: EventWindow) -> Dict[str, Any]:
        return {
            "event_key": event.key,
            "event_code": event.event_code,
            "name": event.name,
            "short_name": event.short_name,
            "event_type": event.event_type,
            "event_type_string": event.event_type_string,
            "district_key": event.district.key if event.district else None,
            "city": event.city,
            "state_prov": event.state_prov,
            "country": event.country,
            "address": event.address,
            "location_name": event.location_name,
            "start_date": window.start,
            "end_date": window.end,
            "year": event.year,
            "week": event.week,
            "playoff_type": event.playoff_type,
            "timezone": event.timezone,
            "website": event.website,
            "first_event_id": event.first_event_id,
            "first_event_code": event.first_event_code,
            "webcasts": event.webcasts,
            "division_keys": event.division_keys,
            "parent_event_key": event.parent_event_key,
        }

    @staticmethod
    def _status_values(status: TbaTeamEventStatus) -> Dict[str, Any]:
        qual = status.qual
        ranking = qual.ranking if qual else None
        alliance = status.alliance
        playoff = status.playoff
        return {
            "qual_ranking": ranking.rank if ranking else None,
            "qual_avg": ranking.qual_average if ranking else None,
            "qual_record": ranking.record.model_dump() if ranking and ranking.record else None,
            "num_teams": qual.num_teams if qual else None,
            "playoff_alliance": alliance.number if alliance else None,
            "alliance_pick": alliance.pick if alliance else None,
            "playoff_level": playoff.level if playoff else None,
            "playoff_record": playoff.record.model_dump() if playoff and playoff.record else None,
            "playoff_status": playoff.status if playoff else None,
            "alliance_status_str": status.alliance_status_str,
            "playoff_status_str": status.playoff_status_str,
            "overall_status_str": status.overall_status_str,
            "next_match_key": status.next_match_key,
            "last_match_key": status.last_match_key,
        }

    @staticmethod
    def _match_values(match: TbaMatch) -> Dict[str, Any]:
        def alliance(side) -> Dict[str, Any]:
            return {
                "team_keys": list(side.team_keys),
                "score": side.score,
                "surrogate_team_keys": list(side.surrogate_team_keys),
                "dq_team_keys": list(side.dq_team_keys),
            }

        red, blue = match.alliances.red, match.alliances.blue
        return {
            "match_key": match.key,
            "event_key": match.event_key,
            "comp_level": match.comp_level,
            "set_number": match.set_number,
            "match_number": match.match_number,
            "winning_alliance": match.winning_alliance or None,
            "red_alliance": alliance(red),
            "blue_alliance": alliance(blue),
            "red_score": red.score,
            "blue_score": blue.score,
            "time": match.time,
            "actual_time": match.actual_time,
            "predicted_time": match.predicted_time,
            "post_result_time": match.post_result_time,
            "score_breakdown": match.score_breakdown,
            "videos": match.videos,
        }
