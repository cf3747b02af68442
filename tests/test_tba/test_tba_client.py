"""Tests for TbaApiClient against httpx.MockTransport."""
import httpx
import pytest

from conftest import TBA_BASE_URL, TEAM_KEY, FakeTbaApi, make_event, make_match, make_oprs, make_status
from app.services.tba.client import TbaApiClient, TbaApiError, TbaConfigurationError
from app.repositories import ConfigRepository


class TestTbaApiClient:

    # Requests
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_sends_auth_header(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add(f"/team/{TEAM_KEY}/events/2025", [make_event()])

        events = await tba_client.get_team_events(2025)

        assert events[0].key == "2025txhou"
        assert events[0].timezone == "America/Chicago"
        assert tba_api.requests[0].headers["X-TBA-Auth-Key"] == "test-key"

    @pytest.mark.asyncio
    async def test_team_override(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add("/team/frc254/awards", [])

        assert await tba_client.get_team_awards("254") == []
        assert tba_api.paths == ["/team/frc254/awards"]

    @pytest.mark.asyncio
    async def test_parses_matches(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add("/event/2025txhou/matches", [
            make_match("2025txhou_sf2m1", [TEAM_KEY, "frc1", "frc2"], ["frc3", "frc4", "frc5"]),
        ])

        matches = await tba_client.get_event_matches("2025txhou")

        assert matches[0].comp_level == "sf"
        assert matches[0].set_number == 2
        assert matches[0].alliances.red.team_keys[0] == TEAM_KEY
        assert matches[0].alliances.blue.score == -1

    @pytest.mark.asyncio
    async def test_status_and_ratings(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add(f"/team/{TEAM_KEY}/event/2025txhou/status", make_status(rank=3))
        tba_api.add("/event/2025txhou/oprs", make_oprs(opr=10.0))

        status = await tba_client.get_team_event_status("2025txhou")
        oprs = await tba_client.get_event_oprs("2025txhou")

        assert status.qual.ranking.rank == 3
        assert oprs.for_team(TEAM_KEY)["opr"] == 10.0
        assert oprs.for_team("frc9999") == {"opr": None, "dpr": None, "ccwm": None}

    @pytest.mark.asyncio
    async def test_null_bodies(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add(f"/team/{TEAM_KEY}/event/2025txhou/status", None)
        tba_api.add("/event/2025txhou/oprs", {})
        tba_api.add("/event/2025txhou/alliances", None)

        assert await tba_client.get_team_event_status("2025txhou") is None
        assert await tba_client.get_event_oprs("2025txhou") is None
        assert await tba_client.get_event_alliances("2025txhou") is None

    # Errors
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_no_api_key_raises_before_io(self, tba_api: FakeTbaApi):
        client = TbaApiClient(api_key="", base_url=TBA_BASE_URL, transport=httpx.MockTransport(tba_api.handler))

        with pytest.raises(TbaConfigurationError):
            await client.get_event_matches("2025txhou")
        assert tba_api.requests == []

    @pytest.mark.asyncio
    async def test_http_error_status(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add("/event/2025txhou", {"Error": "down"}, status=503)

        with pytest.raises(TbaApiError) as exc_info:
            await tba_client.get_event("2025txhou")

        assert exc_info.value.status_code == 503
        assert exc_info.value.endpoint == "event"

    @pytest.mark.asyncio
    async def test_not_found(self, tba_client: TbaApiClient):
        with pytest.raises(TbaApiError) as exc_info:
            await tba_client.get_event("2099nope")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = TbaApiClient(api_key="k", base_url=TBA_BASE_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(TbaApiError, match="timed out"):
            await client.get_event("2025txhou")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = TbaApiClient(api_key="k", base_url=TBA_BASE_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(TbaApiError) as exc_info:
            await client.get_team_awards()
        assert exc_info.value.status_code is None

    # Configuration
    # ─────────────────────────────────────────────────────────────

    def test_from_config(self, db_session):
        config = ConfigRepository(db_session)
        config.set_config("tba_api_key", "stored-key")
        config.set_config("team_number", "118")
        db_session.commit()

        client = TbaApiClient.from_config(db_session, base_url=TBA_BASE_URL)

        assert client.is_configured
        assert client.team_key == "frc118"
        assert client.team_number == "118"

    @pytest.mark.asyncio
    async def test_rotation_applies_to_next_request(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add("/team/frc118/awards", [])
        tba_client.update_api_key("rotated")
        tba_client.update_team_number("118")

        await tba_client.get_team_awards()

        assert tba_api.requests[-1].headers["X-TBA-Auth-Key"] == "rotated"
        assert tba_api.paths[-1] == "/team/frc118/awards"

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tba_client: TbaApiClient, tba_api: FakeTbaApi):
        tba_api.add("/event/2025txhou", make_event())
        await tba_client.get_event("2025txhou")

        await tba_client.close()
        await tba_client.close()
