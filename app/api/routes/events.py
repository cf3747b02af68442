"""Event tracking API routes.

Provides endpoints for:
- The live event summary and match schedule (public)
- Event system status (public)
- TBA webhook ingest (signature-checked)
- Event configuration (admin)
- Manual sync triggers and cache cleanup (admin)
- Scheduler status and control (admin)
- Webhook delivery logs (admin)
"""
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.dependencies import get_event_scheduler, get_sync_engine
from app.core.auth import actor_name, get_api_key
from app.core.database import get_db
from app.core.rate_limit import PUBLIC_LIMIT, WEBHOOK_LIMIT, limiter
from app.core.scheduler import EventScheduler
from app.core.webhook_security import TBA_SIGNATURE_HEADER, get_client_ip, verify_tba_signature
from app.repositories import ConfigRepository, WebhookLogRepository
from app.services.events.sync_engine import EventSyncEngine, SyncResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


class ConfigUpdate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    value: str
    description: Optional[str] = None


def _sync_response(result: SyncResult) -> Dict[str, Any]:
    """Return a sync result, or 500 with the failure reason."""
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or f"{result.operation} failed")
    return result.to_dict()


def _require_scheduler(scheduler: Optional[EventScheduler]) -> EventScheduler:
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Event scheduler is disabled")
    return scheduler


# ============================================================================
# Public
# ============================================================================

@router.get("/summary")
@limiter.limit(PUBLIC_LIMIT)
async def get_event_summary(
    request: Request,
    engine: EventSyncEngine = Depends(get_sync_engine),
) -> Optional[Dict[str, Any]]:
    """
    Summary of the active event for the tracked team.

    Returns null when no event is active.
    """
    return engine.get_event_summary()


@router.get("/matches")
@limiter.limit(PUBLIC_LIMIT)
async def get_match_schedule(
    request: Request,
    engine: EventSyncEngine = Depends(get_sync_engine),
) -> List[Dict[str, Any]]:
    """The team's matches at the active event in schedule order."""
    return [match.to_dict() for match in engine.get_match_schedule()]


@router.get("/status")
@limiter.limit(PUBLIC_LIMIT)
async def get_event_system_status(
    request: Request,
    engine: EventSyncEngine = Depends(get_sync_engine),
) -> Dict[str, Any]:
    return engine.get_system_status()


@router.post("/webhook/tba")
@limiter.limit(WEBHOOK_LIMIT)
async def handle_tba_webhook(
    request: Request,
    db: Session = Depends(get_db),
    engine: EventSyncEngine = Depends(get_sync_engine),
) -> Dict[str, Any]:
    """
    Receive a TBA webhook delivery.

    The raw body is checked against the X-TBA-HMAC signature when a webhook
    secret is configured, logged, and dispatched by message type.
    """
    body = await request.body()
    secret = ConfigRepository(db).get_value("tba_webhook_secret", "")
    try:
        verify_tba_signature(body, request.headers.get(TBA_SIGNATURE_HEADER), secret)
    except HTTPException as e:
        logger.warning(f"Rejected TBA webhook from {get_client_ip(request)}: {e.detail}")
        raise

    try:
        payload = json.loads(body or b"null")
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

    result = await engine.process_webhook(payload)
    if not result.success:
        raise HTTPException(status_code=500, detail=f"Error processing webhook: {result.error}")

    return {
        "message": "Webhook processed successfully",
        "message_type": payload.get("message_type"),
        "records": result.records,
    }


# ============================================================================
# Admin: configuration
# ============================================================================

@router.get("/config")
async def get_event_config(
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
) -> List[Dict[str, Any]]:
    """All config entries; encrypted values are masked."""
    return [entry.to_dict(mask_secrets=True) for entry in ConfigRepository(db).get_all_config()]


@router.post("/config")
async def update_event_config(
    update: ConfigUpdate,
    engine: EventSyncEngine = Depends(get_sync_engine),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    """
    Create or update a config entry.

    Changing tba_api_key or team_number takes effect on the shared client
    immediately; restart the scheduler to apply flag or interval changes.
    """
    try:
        entry = engine.apply_config_update(
            update.key,
            update.value,
            description=update.description,
            updated_by=actor_name(api_key),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Configuration updated successfully", "config": entry.to_dict(mask_secrets=True)}


# ============================================================================
# Admin: manual sync
# ============================================================================

@router.post("/check-events")
async def trigger_event_check(
    engine: EventSyncEngine = Depends(get_sync_engine),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    """Re-check which event is active now."""
    return _sync_response(await engine.check_for_active_events())


@router.post("/update-status")
async def trigger_status_update(
    engine: EventSyncEngine = Depends(get_sync_engine),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    return _sync_response(await engine.update_team_event_status())


@router.post("/update-matches")
async def trigger_match_update(
    engine: EventSyncEngine = Depends(get_sync_engine),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    return _sync_response(await engine.update_event_matches())


@router.post("/cleanup-cache")
async def cleanup_cache(
    engine: EventSyncEngine = Depends(get_sync_engine),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    return _sync_response(await engine.cleanup_expired_cache())


@router.get("/webhook-logs")
async def get_webhook_logs(
    limit: int = Query(50, ge=1, le=500, description="Maximum entries to return"),
    offset: int = Query(0, ge=0, description="Entries to skip"),
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key),
) -> List[Dict[str, Any]]:
    """Recent webhook deliveries, newest first."""
    return [entry.to_dict() for entry in WebhookLogRepository(db).list_logs(limit=limit, offset=offset)]


# ============================================================================
# Admin: scheduler
# ============================================================================

@router.get("/scheduler")
async def get_scheduler_status(
    scheduler: Optional[EventScheduler] = Depends(get_event_scheduler),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    if scheduler is None:
        return {"running": False, "enabled": False, "jobs": []}
    return {"enabled": True, **scheduler.get_status()}


@router.post("/scheduler/restart")
async def restart_scheduler(
    scheduler: Optional[EventScheduler] = Depends(get_event_scheduler),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    """Restart the scheduler so config changes (flag, key, intervals) take effect."""
    scheduler = _require_scheduler(scheduler)
    running = await scheduler.restart()
    return {
        "message": "Scheduler restarted" if running else "Scheduler stopped (event tracking disabled or not configured)",
        **scheduler.get_status(),
    }


@router.post("/scheduler/force-check")
async def force_event_check(
    scheduler: Optional[EventScheduler] = Depends(get_event_scheduler),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    scheduler = _require_scheduler(scheduler)
    return _sync_response(await scheduler.force_event_check())


@router.post("/scheduler/force-update")
async def force_data_update(
    scheduler: Optional[EventScheduler] = Depends(get_event_scheduler),
    api_key: str = Depends(get_api_key),
) -> Dict[str, Any]:
    scheduler = _require_scheduler(scheduler)
    return _sync_response(await scheduler.force_data_update())
