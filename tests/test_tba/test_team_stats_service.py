"""Tests for TeamStatsService with a mocked TBA client."""
from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from app.services.tba.client import TbaApiClient, TbaApiError
from app.services.tba.schemas import TbaAward, TbaEvent, TbaEventSimple, TbaTeamEventStatus
from app.services.tba.team_stats_service import InvalidAwardPattern, TeamStatsService


def award(name, award_type, event_key, year):
    return TbaAward(name=name, award_type=award_type, event_key=event_key, year=year)


def simple_event(key, start_date, end_date):
    return TbaEventSimple(
        key=key, name=key, event_code=key[4:], event_type=1,
        start_date=start_date, end_date=end_date, year=int(key[:4]),
    )


AWARDS = [
    award("Regional Winners", 1, "2019mokc", 2019),
    award("Regional Finalists", 2, "2022ksla", 2022),
    award("Engineering Inspiration Award", 9, "2022ksla", 2022),
    award("District Event Winner", 1, "2024txhou", 2024),
    award("Regional Chairman's Award", 0, "2018mokc", 2018),
    award("FIRST Impact Award", 0, "2024txhou", 2024),
]


@pytest.fixture
def client():
    client = Mock(spec=TbaApiClient)
    client.team_key = "frc1806"
    client.team_number = "1806"
    client.get_team_awards = AsyncMock(return_value=AWARDS)
    client.get_event = AsyncMock(return_value=TbaEvent(
        key="2024txhou", name="FIT District Houston Event", event_code="txhou", event_type=1,
        start_date="2024-03-21", end_date="2024-03-23", year=2024,
    ))
    return client


@pytest.fixture
def service(client) -> TeamStatsService:
    return TeamStatsService(client)


class TestAwardStats:

    @pytest.mark.asyncio
    async def test_regional_wins(self, service: TeamStatsService):
        result = await service.get_regional_wins()

        assert result["team_key"] == "frc1806"
        assert result["winners"] == 2
        assert result["finalists"] == 1
        assert result["total"] == 3
        assert len(result["awards"]) == 3

    @pytest.mark.asyncio
    async def test_event_wins(self, service: TeamStatsService):
        result = await service.get_event_wins()

        assert result["count"] == 2
        assert {w["event_key"] for w in result["wins"]} == {"2019mokc", "2024txhou"}

    @pytest.mark.asyncio
    async def test_award_count_by_year(self, service: TeamStatsService):
        result = await service.get_award_count()

        assert result["count"] == 6
        assert result["by_year"] == {2018: 1, 2019: 1, 2022: 2, 2024: 2}

    @pytest.mark.asyncio
    async def test_team_override(self, service: TeamStatsService, client):
        result = await service.get_award_count("254")

        client.get_team_awards.assert_awaited_once_with("frc254")
        assert result["team_key"] == "frc254"
        assert result["team_number"] == "254"

    @pytest.mark.asyncio
    async def test_most_recent_win_with_event_name(self, service: TeamStatsService, client):
        result = await service.get_most_recent_win()

        assert result["most_recent_win"]["event_key"] == "2024txhou"
        assert result["event_name"] == "FIT District Houston Event"
        client.get_event.assert_awaited_once_with("2024txhou")

    @pytest.mark.asyncio
    async def test_event_name_lookup_failure(self, service: TeamStatsService, client):
        client.get_event.side_effect = TbaApiError("TBA returned 500", status_code=500)

        result = await service.get_most_recent_award()

        assert result["most_recent_award"]["year"] == 2024
        assert result["event_name"] is None

    @pytest.mark.asyncio
    async def test_no_awards(self, service: TeamStatsService, client):
        client.get_team_awards.return_value = []

        result = await service.get_most_recent_win()

        assert result["most_recent_win"] is None
        assert result["event_name"] is None
        client.get_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_awards_by_type(self, service: TeamStatsService):
        result = await service.get_awards_by_type("impact|chairman", label="Impact")

        assert result["count"] == 2
        assert result["label"] == "Impact"

    @pytest.mark.asyncio
    async def test_invalid_pattern(self, service: TeamStatsService, client):
        with pytest.raises(InvalidAwardPattern):
            await service.get_awards_by_type("(unclosed")
        client.get_team_awards.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_errors_propagate(self, service: TeamStatsService, client):
        client.get_team_awards.side_effect = TbaApiError("TBA returned 503", status_code=503)

        with pytest.raises(TbaApiError):
            await service.get_regional_wins()


class TestEventStats:

    @pytest.mark.asyncio
    async def test_events_entered(self, service: TeamStatsService, client):
        client.get_team_events_simple = AsyncMock(return_value=[
            simple_event("2019mokc", "2019-03-06", "2019-03-09"),
            simple_event("2024txhou", "2024-03-21", "2024-03-23"),
            simple_event("2024txdal", "2024-04-04", "2024-04-06"),
        ])

        result = await service.get_events_entered()

        assert result["count"] == 3
        assert result["by_year"] == {2019: 1, 2024: 2}
        assert (result["first_year"], result["last_year"]) == (2019, 2024)

    @pytest.mark.asyncio
    async def test_most_recent_results(self, service: TeamStatsService, client):
        client.get_team_events_simple = AsyncMock(return_value=[
            simple_event("2024txhou", "2024-03-21", "2024-03-23"),
            simple_event("2024txdal", "2024-04-04", "2024-04-06"),
            simple_event("2024txcmp", "2024-04-20", "2024-04-22"),
        ])
        client.get_team_event_status = AsyncMock(return_value=TbaTeamEventStatus(overall_status_str="Won"))
        client.get_event_alliances = AsyncMock(side_effect=TbaApiError("boom", status_code=500))
        client.get_team_event_awards = AsyncMock(return_value=[award("District Event Winner", 1, "2024txdal", 2024)])

        result = await service.get_most_recent_results(today=date(2024, 4, 10))

        assert result["event"]["key"] == "2024txdal"
        assert result["status"]["overall_status_str"] == "Won"
        assert result["alliances"] is None
        assert result["awards"][0]["name"] == "District Event Winner"

    @pytest.mark.asyncio
    async def test_most_recent_results_before_first_event(self, service: TeamStatsService, client):
        client.get_team_events_simple = AsyncMock(return_value=[
            simple_event("2024txhou", "2024-03-21", "2024-03-23"),
        ])

        result = await service.get_most_recent_results(today=date(2024, 1, 1))

        assert result["event"] is None
        assert result["status"] is None
