"""Unit tests for ranking point extraction."""
from app.services.events.ranking_points import (
    RANKING_POINT_SCHEMAS,
    BonusRankingSchema,
    RankingPointInfo,
    extract_ranking_points,
    get_team_ranking_points,
)

RED = ["frc1806", "frc1", "frc2"]
BLUE = ["frc118", "frc3", "frc4"]

BREAKDOWN_2025 = {
    "red": {"rp": 4, "bargeBonusAchieved": True, "coralBonusAchieved": False, "totalPoints": 112},
    "blue": {"rp": 1, "bargeBonusAchieved": False, "coralBonusAchieved": True, "totalPoints": 86},
}


class TestExtractRankingPoints:

    def test_2025_bonuses(self):
        info = extract_ranking_points(BREAKDOWN_2025, 2025)

        assert info == RankingPointInfo(
            red_rp=4,
            blue_rp=1,
            red_breakdown={"Barge Bonus": True, "Coral Bonus": False},
            blue_breakdown={"Barge Bonus": False, "Coral Bonus": True},
        )

    def test_missing_bonus_fields_read_as_false(self):
        info = extract_ranking_points({"red": {"rp": 2}, "blue": {}}, 2025)

        assert info.red_rp == 2
        assert info.blue_rp == 0
        assert info.blue_breakdown == {"Barge Bonus": False, "Coral Bonus": False}

    def test_missing_side_returns_none(self):
        assert extract_ranking_points({"red": {"rp": 3}}, 2025) is None

    def test_non_mapping_input_returns_none(self):
        assert extract_ranking_points(None, 2025) is None
        assert extract_ranking_points("not a breakdown", 2025) is None
        assert extract_ranking_points({"red": [], "blue": {}}, 2025) is None

    def test_unknown_year_reads_flat_rp(self):
        info = extract_ranking_points({"red": {"rp": 3}, "blue": {"rp": 2}}, 2019)

        assert (info.red_rp, info.blue_rp) == (3, 2)
        assert info.red_breakdown == {}

    def test_unknown_year_without_rp_is_zero(self):
        info = extract_ranking_points({"red": {"rp": 3}, "blue": {"totalPoints": 10}}, 2019)
        assert (info.red_rp, info.blue_rp) == (0, 0)

    def test_registering_a_season(self, monkeypatch):
        monkeypatch.setitem(RANKING_POINT_SCHEMAS, 2030, BonusRankingSchema(("Test Bonus", "testBonus")))

        info = extract_ranking_points({"red": {"rp": 1, "testBonus": True}, "blue": {"rp": 0}}, 2030)

        assert info.red_breakdown == {"Test Bonus": True}


class TestTeamRankingPoints:

    def test_red_team(self):
        points = get_team_ranking_points(BREAKDOWN_2025, 2025, "frc1806", RED, BLUE)
        assert points.to_dict() == {"rp": 4, "breakdown": {"Barge Bonus": True, "Coral Bonus": False}}

    def test_blue_team(self):
        points = get_team_ranking_points(BREAKDOWN_2025, 2025, "frc118", RED, BLUE)
        assert points.rp == 1

    def test_team_on_neither_alliance(self):
        assert get_team_ranking_points(BREAKDOWN_2025, 2025, "frc9999", RED, BLUE) is None

    def test_no_breakdown_yet(self):
        assert get_team_ranking_points(None, 2025, "frc1806", RED, BLUE) is None
