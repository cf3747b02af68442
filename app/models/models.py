"""
Database models for the team event sync service.

Tables mirror the data cached from The Blue Alliance (TBA) plus the
operator-editable configuration and an audit log of inbound webhooks.
All timestamps are naive UTC; match times are unix epoch seconds as TBA
reports them.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON, BigInteger, Boolean, Column, DateTime, Float, Index, Integer,
    String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

from app.utils.timezone import utc_now

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class EventConfig(Base):
    """Operator-editable key/value settings (API key, team number, feature flag)."""
    __tablename__ = "event_config"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    is_encrypted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=utc_now)
    updated_by = Column(String(64), nullable=True)

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": "***ENCRYPTED***" if (mask_secrets and self.is_encrypted and self.value) else self.value,
            "description": self.description,
            "is_encrypted": bool(self.is_encrypted),
            "updated_at": _iso(self.updated_at),
            "updated_by": self.updated_by,
        }


class CurrentEvent(Base):
    """A competition event the team is registered for, cached from TBA."""
    __tablename__ = "current_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_key = Column(String(50), unique=True, nullable=False)
    event_code = Column(String(20), nullable=False)
    name = Column(String(200), nullable=False)
    short_name = Column(String(100), nullable=True)
    event_type = Column(Integer, nullable=False)
    event_type_string = Column(String(50), nullable=True)
    district_key = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    state_prov = Column(String(50), nullable=True)
    country = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    location_name = Column(String(200), nullable=True)
    start_date = Column(DateTime, nullable=False, index=True)  # local start-of-day, in UTC
    end_date = Column(DateTime, nullable=False, index=True)  # local end-of-day, in UTC
    year = Column(Integer, nullable=False)
    week = Column(Integer, nullable=True)
    playoff_type = Column(Integer, nullable=True)
    timezone = Column(String(50), nullable=True)
    website = Column(String(500), nullable=True)
    first_event_id = Column(String(50), nullable=True)
    first_event_code = Column(String(20), nullable=True)
    webcasts = Column(JSONType, nullable=True)
    division_keys = Column(JSONType, nullable=True)
    parent_event_key = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_key": self.event_key,
            "event_code": self.event_code,
            "name": self.name,
            "short_name": self.short_name,
            "event_type": self.event_type,
            "event_type_string": self.event_type_string,
            "district_key": self.district_key,
            "city": self.city,
            "state_prov": self.state_prov,
            "country": self.country,
            "address": self.address,
            "location_name": self.location_name,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "year": self.year,
            "week": self.week,
            "playoff_type": self.playoff_type,
            "timezone": self.timezone,
            "website": self.website,
            "webcasts": self.webcasts,
            "division_keys": self.division_keys,
            "parent_event_key": self.parent_event_key,
            "is_active": bool(self.is_active),
            "updated_at": _iso(self.updated_at),
        }


class TeamEventStatus(Base):
    """The tracked team's standing at an event (ranking, record, ratings)."""
    __tablename__ = "team_event_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_key = Column(String(20), nullable=False, index=True)
    event_key = Column(String(50), nullable=False, index=True)
    qual_ranking = Column(Integer, nullable=True)
    qual_avg = Column(Float, nullable=True)
    qual_record = Column(JSONType, nullable=True)  # {wins, losses, ties}
    num_teams = Column(Integer, nullable=True)
    playoff_alliance = Column(Integer, nullable=True)
    alliance_pick = Column(Integer, nullable=True)
    playoff_level = Column(String(10), nullable=True)
    playoff_record = Column(JSONType, nullable=True)  # {wins, losses, ties}
    playoff_status = Column(String(100), nullable=True)
    alliance_status_str = Column(Text, nullable=True)
    playoff_status_str = Column(Text, nullable=True)
    overall_status_str = Column(Text, nullable=True)
    next_match_key = Column(String(50), nullable=True)
    last_match_key = Column(String(50), nullable=True)
    # Null until TBA publishes ratings for the event
    opr = Column(Float, nullable=True)
    dpr = Column(Float, nullable=True)
    ccwm = Column(Float, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("team_key", "event_key", name="uq_team_event_status_team_event"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_key": self.team_key,
            "event_key": self.event_key,
            "qual_ranking": self.qual_ranking,
            "qual_avg": self.qual_avg,
            "qual_record": self.qual_record,
            "num_teams": self.num_teams,
            "playoff_alliance": self.playoff_alliance,
            "alliance_pick": self.alliance_pick,
            "playoff_level": self.playoff_level,
            "playoff_record": self.playoff_record,
            "playoff_status": self.playoff_status,
            "alliance_status_str": self.alliance_status_str,
            "playoff_status_str": self.playoff_status_str,
            "overall_status_str": self.overall_status_str,
            "next_match_key": self.next_match_key,
            "last_match_key": self.last_match_key,
            "opr": self.opr,
            "dpr": self.dpr,
            "ccwm": self.ccwm,
            "updated_at": _iso(self.updated_at),
        }


class EventMatch(Base):
    """A single match at an event, keyed by TBA match key (e.g. 2025txhou_qm12)."""
    __tablename__ = "event_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_key = Column(String(50), unique=True, nullable=False)
    event_key = Column(String(50), nullable=False, index=True)
    comp_level = Column(String(10), nullable=False)  # qm, ef, qf, sf, f
    set_number = Column(Integer, nullable=True)
    match_number = Column(Integer, nullable=False)
    winning_alliance = Column(String(4), nullable=True)  # red, blue, or None
    red_alliance = Column(JSONType, nullable=False)  # team_keys, score, surrogate/dq keys
    blue_alliance = Column(JSONType, nullable=False)
    red_score = Column(Integer, nullable=True)  # -1 until played
    blue_score = Column(Integer, nullable=True)
    time = Column(BigInteger, nullable=True, index=True)
    actual_time = Column(BigInteger, nullable=True)
    predicted_time = Column(BigInteger, nullable=True)
    post_result_time = Column(BigInteger, nullable=True)
    score_breakdown = Column(JSONType, nullable=True)
    videos = Column(JSONType, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    def team_keys(self, alliance: str) -> list:
        payload = self.red_alliance if alliance == "red" else self.blue_alliance
        return list((payload or {}).get("team_keys") or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_key": self.match_key,
            "event_key": self.event_key,
            "comp_level": self.comp_level,
            "set_number": self.set_number,
            "match_number": self.match_number,
            "winning_alliance": self.winning_alliance,
            "red_alliance": self.red_alliance,
            "blue_alliance": self.blue_alliance,
            "red_score": self.red_score,
            "blue_score": self.blue_score,
            "time": self.time,
            "actual_time": self.actual_time,
            "predicted_time": self.predicted_time,
            "post_result_time": self.post_result_time,
            "score_breakdown": self.score_breakdown,
            "videos": self.videos,
            "updated_at": _iso(self.updated_at),
        }


class EventStatsCache(Base):
    """Read-through cache of derived/fetched stats per event, team and stat type."""
    __tablename__ = "event_stats_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_key = Column(String(50), nullable=False)
    team_key = Column(String(20), nullable=False)
    stat_type = Column(String(50), nullable=False)  # efficiency_ratings, ...
    stat_data = Column(JSONType, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("event_key", "team_key", "stat_type", name="uq_event_stats_cache_key"),
    )


class WebhookLog(Base):
    """Append-only audit log of TBA webhook deliveries."""
    __tablename__ = "tba_webhook_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_type = Column(String(50), nullable=False)
    message_data = Column(JSONType, nullable=False)
    team_key = Column(String(20), nullable=True)
    event_key = Column(String(50), nullable=True)
    match_key = Column(String(50), nullable=True)
    processed = Column(Boolean, nullable=False, default=False, index=True)
    error_message = Column(Text, nullable=True)
    received_at = Column(DateTime, nullable=False, default=utc_now)
    processed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_tba_webhook_logs_received_at", "received_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message_type": self.message_type,
            "message_data": self.message_data,
            "team_key": self.team_key,
            "event_key": self.event_key,
            "match_key": self.match_key,
            "processed": bool(self.processed),
            "error_message": self.error_message,
            "received_at": _iso(self.received_at),
            "processed_at": _iso(self.processed_at),
        }
