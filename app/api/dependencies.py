"""
FastAPI dependencies for the shared TBA client, scheduler and per-request services.

The client and scheduler are created in the application lifespan and stored
on app.state; tests override get_tba_client / get_event_scheduler.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.scheduler import EventScheduler
from app.services.events.sync_engine import EventSyncEngine
from app.services.tba.client import TbaApiClient
from app.services.tba.team_stats_service import TeamStatsService


def get_tba_client(request: Request) -> TbaApiClient:
    client = getattr(request.app.state, "tba_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="TBA client not initialized")
    return client


def get_event_scheduler(request: Request) -> Optional[EventScheduler]:
    """The running app's scheduler, or None when scheduling is disabled."""
    return getattr(request.app.state, "event_scheduler", None)


def get_sync_engine(
    db: Session = Depends(get_db),
    client: TbaApiClient = Depends(get_tba_client),
) -> EventSyncEngine:
    """Dependency to get a sync engine bound to the request's session."""
    return EventSyncEngine(db, client)


def get_team_stats_service(client: TbaApiClient = Depends(get_tba_client)) -> TeamStatsService:
    return TeamStatsService(client)
