"""
Event tracking scheduler.

This module provides scheduled background jobs for:
- Active event detection (default hourly, `event_check_interval`)
- Team status and match refresh for the active event (default every 5
  minutes, `match_check_interval`)
- Expired stats cache cleanup (daily at 2AM)

The scheduler only starts when `enable_event_display` is "true" and a TBA
API key is configured; both are read once at start. Use restart() after
changing either.

Scheduler: APScheduler (lightweight, FastAPI-compatible)
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import clear_correlation_id, new_sync_run_id
from app.core.metrics import update_scheduler_metrics
from app.repositories import ConfigRepository
from app.services.events.sync_engine import EventSyncEngine, SyncResult
from app.services.tba.client import TbaApiClient

logger = logging.getLogger(__name__)

DEFAULT_EVENT_CHECK_INTERVAL = 3600
DEFAULT_MATCH_CHECK_INTERVAL = 300


class EventScheduler:
    """
    Runs the event sync jobs on a schedule.

    Each job run opens its own session, builds an engine with the shared
    TBA client and tags its log lines with a fresh correlation ID.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        client: TbaApiClient,
        engine_factory: Callable[[Session, TbaApiClient], EventSyncEngine] = EventSyncEngine,
        timezone: Optional[str] = None,
        restart_delay: float = 1.0,
    ):
        """
        Initialize the scheduler (no jobs are created until start()).

        Args:
            session_factory: Returns a new database session
            client: Shared TBA API client
            engine_factory: Builds a sync engine from (session, client)
            timezone: Timezone for cron triggers (default settings.SCHEDULER_TIMEZONE)
            restart_delay: Seconds to wait between stop and start in restart()
        """
        self.session_factory = session_factory
        self.client = client
        self.engine_factory = engine_factory
        self.timezone = timezone or settings.SCHEDULER_TIMEZONE
        self.restart_delay = restart_delay
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.event_check_interval = DEFAULT_EVENT_CHECK_INTERVAL
        self.match_check_interval = DEFAULT_MATCH_CHECK_INTERVAL

    async def start(self) -> bool:
        """
        Start the scheduler if event tracking is enabled and configured.

        Runs one active-event check right after the jobs are scheduled.

        Returns:
            True if the scheduler is running
        """
        if self.running:
            logger.warning("Event scheduler already running")
            return True

        db = self.session_factory()
        try:
            config = ConfigRepository(db)
            enabled = config.is_event_display_enabled()
            api_key = config.get_value("tba_api_key")
            self.event_check_interval = config.get_int("event_check_interval", DEFAULT_EVENT_CHECK_INTERVAL)
            self.match_check_interval = config.get_int("match_check_interval", DEFAULT_MATCH_CHECK_INTERVAL)
        finally:
            db.close()

        if not enabled:
            logger.info("Event tracking is disabled, scheduler not started")
            return False
        if not api_key:
            logger.warning("No TBA API key configured, scheduler not started")
            return False

        logger.info("Starting event scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one instance of each job
                'misfire_grace_time': 300  # 5 minutes grace for misfires
            }
        )
        self._schedule_jobs()
        self.scheduler.start()
        self.running = True
        update_scheduler_metrics(True, len(self.scheduler.get_jobs()))

        logger.info(f"Event scheduler started with {len(self.scheduler.get_jobs())} jobs")
        self._log_scheduled_jobs()

        await self.run_event_check()
        return True

    async def stop(self):
        """Stop the scheduler. Safe to call when not running."""
        if not self.running:
            return

        logger.info("Stopping event scheduler...")
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.running = False
        update_scheduler_metrics(False)
        logger.info("Event scheduler stopped")

    async def restart(self) -> bool:
        """Stop, pause briefly, and start again (picks up config changes)."""
        logger.info("Restarting event scheduler...")
        await self.stop()
        await asyncio.sleep(self.restart_delay)
        return await self.start()

    def _schedule_jobs(self):
        self.scheduler.add_job(
            self.run_event_check,
            trigger=IntervalTrigger(seconds=self.event_check_interval),
            id='event_check',
            name='Check For Active Events',
        )
        self.scheduler.add_job(
            self.run_data_update,
            trigger=IntervalTrigger(seconds=self.match_check_interval),
            id='event_data_update',
            name='Update Team Status And Matches',
        )
        self.scheduler.add_job(
            self.run_cache_cleanup,
            trigger=CronTrigger(hour=2, minute=0, timezone=self.timezone),
            id='stats_cache_cleanup',
            name='Clean Up Expired Stats Cache',
            misfire_grace_time=3600,
        )

    # ========================================================================
    # Jobs
    # ========================================================================

    async def _run_job(self, job_name: str, operation: str) -> SyncResult:
        """Run one engine operation in a fresh session under its own correlation ID."""
        token = new_sync_run_id(job_name)
        db = self.session_factory()
        try:
            engine = self.engine_factory(db, self.client)
            result = await getattr(engine, operation)()
            if result.skipped:
                logger.info(f"{job_name}: skipped (no active event)")
            elif result.success:
                logger.info(f"{job_name}: {result.records} records ({result.duration_ms}ms)")
            else:
                logger.error(f"{job_name} failed: {result.error}")
            return result
        except Exception as e:
            logger.error(f"{job_name} failed: {e}", exc_info=True)
            return SyncResult(operation, success=False, error=str(e))
        finally:
            db.close()
            clear_correlation_id(token)

    async def run_event_check(self) -> SyncResult:
        return await self._run_job("event_check", "run_event_check")

    async def run_data_update(self) -> SyncResult:
        return await self._run_job("event_data_update", "update_event_data")

    async def run_cache_cleanup(self) -> SyncResult:
        return await self._run_job("stats_cache_cleanup", "cleanup_expired_cache")

    async def force_event_check(self) -> SyncResult:
        """Run the active-event check now, outside the schedule."""
        logger.info("Manual event check triggered")
        return await self.run_event_check()

    async def force_data_update(self) -> SyncResult:
        """Refresh status and matches now, outside the schedule."""
        logger.info("Manual data update triggered")
        return await self.run_data_update()

    # ========================================================================
    # Status
    # ========================================================================

    def get_status(self) -> Dict[str, Any]:
        jobs = self.scheduler.get_jobs() if (self.running and self.scheduler) else []
        return {
            "running": self.running,
            "timezone": self.timezone,
            "event_check_interval": self.event_check_interval,
            "match_check_interval": self.match_check_interval,
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                    "trigger": str(job.trigger),
                }
                for job in jobs
            ],
        }

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if job.next_run_time else "Pending"
            logger.info(f"  {job.name} ({job.id}), next run: {next_run}")
