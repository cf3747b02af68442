#!/usr/bin/env python3
"""
Background runner for the event tracking scheduler.

Runs the event scheduler as a standalone service, without the HTTP API.
It can be run via systemd, supervisor, or directly.

Usage:
    python run_scheduler.py                        # Run in foreground
    python run_scheduler.py --status               # Show configuration and active event
    python run_scheduler.py --trigger event-check  # Run one job now and exit
"""
import argparse
import asyncio
import logging
import signal
import sys

from app.core.config import settings
from app.core.database import init_db, session_factory
from app.core.logging import configure_logging
from app.core.scheduler import EventScheduler
from app.repositories import ConfigRepository, EventRepository
from app.services.tba.client import TbaApiClient

logger = logging.getLogger(__name__)

TRIGGERS = {
    "event-check": "run_event_check",
    "data-update": "run_data_update",
    "cleanup": "run_cache_cleanup",
}


def _build_scheduler() -> EventScheduler:
    db = session_factory()
    try:
        client = TbaApiClient.from_config(db)
    finally:
        db.close()
    return EventScheduler(session_factory, client)


class SchedulerRunner:
    """Runner for the event scheduler."""

    def __init__(self):
        self.scheduler: EventScheduler = None
        self.shutdown = asyncio.Event()

    async def start(self) -> int:
        """Start the scheduler and run until a shutdown signal arrives."""
        logger.info("Starting scheduler runner...")

        self.scheduler = _build_scheduler()
        if not await self.scheduler.start():
            logger.warning("Scheduler not started: enable_event_display is off or no TBA API key is set")
            await self.scheduler.client.close()
            return 1

        logger.info("Scheduler is now running. Press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        await self.shutdown.wait()

        await self.scheduler.stop()
        await self.scheduler.client.close()
        logger.info("Scheduler runner stopped")
        return 0

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown.set()


def run_status_check() -> bool:
    """Print the stored event configuration and the active event."""
    db = session_factory()
    try:
        config = ConfigRepository(db)
        active = EventRepository(db).get_active_event()

        print("=" * 60)
        print("EVENT TRACKING STATUS")
        print("=" * 60)
        for entry in config.get_all_config():
            print(f"  {entry.key:24} {entry.to_dict(mask_secrets=True)['value']}")
        print()
        if active:
            print(f"  Active event: {active.name} ({active.event_key})")
            print(f"  {active.start_date:%Y-%m-%d} to {active.end_date:%Y-%m-%d}")
        else:
            print("  No active event")
        print("=" * 60)

        return config.is_event_display_enabled() and bool(config.get_value("tba_api_key"))
    finally:
        db.close()


async def run_trigger_job(name: str) -> bool:
    """Run a single job once, outside the schedule."""
    scheduler = _build_scheduler()
    try:
        print(f"Triggering job: {name}")
        result = await getattr(scheduler, TRIGGERS[name])()
    finally:
        await scheduler.client.close()

    if result.success:
        outcome = "skipped (no active event)" if result.skipped else f"{result.records} records"
        print(f"Job '{name}' finished: {outcome}")
        return True
    print(f"Job '{name}' failed: {result.error}")
    return False


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run the event tracking scheduler"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show event tracking configuration and the active event, then exit"
    )
    parser.add_argument(
        "--trigger",
        choices=sorted(TRIGGERS),
        help="Run one job now and exit"
    )
    args = parser.parse_args()

    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    init_db()

    if args.status:
        return 0 if run_status_check() else 1

    if args.trigger:
        return 0 if asyncio.run(run_trigger_job(args.trigger)) else 1

    runner = SchedulerRunner()
    try:
        return asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0
    except Exception as e:
        logger.error(f"Scheduler error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
