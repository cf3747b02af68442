"""Tests for EventScheduler gating, jobs and lifecycle."""
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import TEAM_KEY, FakeTbaApi
from app.core.scheduler import EventScheduler
from app.repositories import ConfigRepository
from app.services.events.sync_engine import SyncResult


@pytest.fixture
def scheduler(session_factory, tba_client, tba_api: FakeTbaApi):
    tba_api.add(f"/team/{TEAM_KEY}/events/2025", [])
    tba_api.add(f"/team/{TEAM_KEY}/events/2026", [])
    tba_api.add(f"/team/{TEAM_KEY}/events/2027", [])
    return EventScheduler(session_factory, tba_client, timezone="UTC", restart_delay=0)


class TestSchedulerGating:

    @pytest.mark.asyncio
    async def test_disabled_flag_creates_no_jobs(self, db_session, scheduler: EventScheduler, tba_api):
        ConfigRepository(db_session).set_config("tba_api_key", "test-key")
        db_session.commit()

        assert await scheduler.start() is False
        assert scheduler.running is False
        assert scheduler.scheduler is None
        assert scheduler.get_status()["jobs"] == []
        assert tba_api.requests == []

    @pytest.mark.asyncio
    async def test_missing_api_key_creates_no_jobs(self, db_session, scheduler: EventScheduler):
        ConfigRepository(db_session).set_config("enable_event_display", "true")
        db_session.commit()

        assert await scheduler.start() is False
        assert scheduler.scheduler is None


class TestSchedulerLifecycle:

    @pytest.mark.asyncio
    async def test_start_schedules_jobs_and_runs_initial_check(self, enable_tracking, scheduler: EventScheduler, tba_api):
        try:
            assert await scheduler.start() is True

            status = scheduler.get_status()
            assert status["running"] is True
            assert {job["id"] for job in status["jobs"]} == {
                "event_check", "event_data_update", "stats_cache_cleanup",
            }
            assert any(path.startswith(f"/team/{TEAM_KEY}/events/") for path in tba_api.paths)
        finally:
            await scheduler.stop()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_intervals_read_from_config(self, db_session, enable_tracking, scheduler: EventScheduler):
        config = ConfigRepository(db_session)
        config.set_config("event_check_interval", "1800")
        config.set_config("match_check_interval", "60")
        db_session.commit()

        try:
            await scheduler.start()
            assert scheduler.event_check_interval == 1800
            assert scheduler.match_check_interval == 60
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, enable_tracking, scheduler: EventScheduler):
        try:
            await scheduler.start()
            first = scheduler.scheduler
            assert await scheduler.start() is True
            assert scheduler.scheduler is first
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, scheduler: EventScheduler):
        await scheduler.stop()
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_restart_picks_up_disabled_flag(self, db_session, enable_tracking, scheduler: EventScheduler):
        await scheduler.start()
        ConfigRepository(db_session).set_config("enable_event_display", "false")
        db_session.commit()

        assert await scheduler.restart() is False
        assert scheduler.running is False


class TestSchedulerJobs:

    @pytest.mark.asyncio
    async def test_job_uses_fresh_engine_per_run(self, session_factory, tba_client):
        engines = []

        def engine_factory(db, client):
            engine = Mock()
            engine.update_event_data = AsyncMock(return_value=SyncResult("update_event_data", records=3))
            engines.append(engine)
            return engine

        scheduler = EventScheduler(session_factory, tba_client, engine_factory=engine_factory)

        first = await scheduler.force_data_update()
        second = await scheduler.force_data_update()

        assert first.records == 3 and second.records == 3
        assert len(engines) == 2

    @pytest.mark.asyncio
    async def test_job_exception_becomes_failed_result(self, session_factory, tba_client):
        def engine_factory(db, client):
            engine = Mock()
            engine.cleanup_expired_cache = AsyncMock(side_effect=RuntimeError("disk full"))
            return engine

        scheduler = EventScheduler(session_factory, tba_client, engine_factory=engine_factory)

        result = await scheduler.run_cache_cleanup()

        assert result.success is False
        assert result.error == "disk full"

    @pytest.mark.asyncio
    async def test_force_event_check(self, enable_tracking, scheduler: EventScheduler):
        result = await scheduler.force_event_check()

        assert result.success
        assert result.has_active_event is False
