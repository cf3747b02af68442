"""
Team history stats from The Blue Alliance.

Public endpoints for the team website: award counts, event wins, events
entered and most recent results. Every call goes to TBA; results are not
stored locally.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.api.dependencies import get_team_stats_service
from app.core.rate_limit import STATS_LIMIT, limiter
from app.services.tba.client import TbaApiError, TbaConfigurationError
from app.services.tba.team_stats_service import InvalidAwardPattern, TeamStatsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tba-stats", tags=["tba-stats"])

TEAM_QUERY = Query(None, description="Team number (defaults to the configured team)", pattern=r"^(frc)?\d+$")


@contextmanager
def _tba_errors(operation: str):
    """Map TBA client failures to HTTP errors."""
    try:
        yield
    except TbaConfigurationError:
        raise HTTPException(status_code=500, detail="TBA API key not configured")
    except InvalidAwardPattern as e:
        raise HTTPException(status_code=400, detail=f"Invalid award pattern: {e}")
    except TbaApiError as e:
        logger.error(f"Error fetching {operation}: {e}")
        status_code = 502 if e.status_code else 500
        raise HTTPException(status_code=status_code, detail=f"Error fetching {operation}: {e}")


@router.get("/regional-wins")
@limiter.limit(STATS_LIMIT)
async def get_regional_wins(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    """Winner and finalist awards across all seasons."""
    with _tba_errors("regional wins"):
        return await service.get_regional_wins(team)


@router.get("/event-wins")
@limiter.limit(STATS_LIMIT)
async def get_event_wins(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    with _tba_errors("event wins"):
        return await service.get_event_wins(team)


@router.get("/awards")
@limiter.limit(STATS_LIMIT)
async def get_award_count(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    """Total award count with a per-year breakdown."""
    with _tba_errors("awards"):
        return await service.get_award_count(team)


@router.get("/events-entered")
@limiter.limit(STATS_LIMIT)
async def get_events_entered(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    with _tba_errors("events entered"):
        return await service.get_events_entered(team)


@router.get("/most-recent-win")
@limiter.limit(STATS_LIMIT)
async def get_most_recent_win(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    with _tba_errors("most recent win"):
        return await service.get_most_recent_win(team)


@router.get("/most-recent-results")
@limiter.limit(STATS_LIMIT)
async def get_most_recent_results(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    """The latest finished event with the team's status, alliances and awards there."""
    with _tba_errors("most recent results"):
        return await service.get_most_recent_results(team)


@router.get("/most-recent-award")
@limiter.limit(STATS_LIMIT)
async def get_most_recent_award(
    request: Request,
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    with _tba_errors("most recent award"):
        return await service.get_most_recent_award(team)


@router.get("/awards-by-type")
@limiter.limit(STATS_LIMIT)
async def get_awards_by_type(
    request: Request,
    pattern: str = Query(".*", max_length=200, description="Case-insensitive regex over award names"),
    label: str = Query("Awards", max_length=100),
    team: Optional[str] = TEAM_QUERY,
    service: TeamStatsService = Depends(get_team_stats_service),
) -> Dict[str, Any]:
    """Awards whose name matches a pattern, e.g. ``pattern=impact|chairman``."""
    with _tba_errors("awards by type"):
        return await service.get_awards_by_type(pattern, label, team)
