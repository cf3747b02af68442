"""Ranking point extraction from TBA match score breakdowns.

Score breakdowns are game-specific: each season's game defines its own bonus
ranking points and the field names TBA uses for them. Seasons are handled by
a registry of schemas keyed by year; unknown years fall back to reading a flat
``rp`` value from each alliance.

Adding a season:

    RANKING_POINT_SCHEMAS[2026] = BonusRankingSchema(
        ("Some Bonus", "someBonusAchieved"),
    )

These functions never raise; malformed input yields ``None``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RankingPointInfo:
    red_rp: int = 0
    blue_rp: int = 0
    red_breakdown: Dict[str, bool] = field(default_factory=dict)
    blue_breakdown: Dict[str, bool] = field(default_factory=dict)


@dataclass
class TeamRankingPoints:
    rp: int
    breakdown: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"rp": self.rp, "breakdown": dict(self.breakdown)}


def _rp_value(side: Mapping[str, Any]) -> int:
    try:
        return int(side.get("rp") or 0)
    except (TypeError, ValueError):
        return 0


class FlatRankingSchema:
    """Reads only the per-alliance ``rp`` total; zero for both if either side lacks it."""

    def extract(self, red: Mapping[str, Any], blue: Mapping[str, Any]) -> RankingPointInfo:
        if "rp" not in red or "rp" not in blue:
            return RankingPointInfo()
        return RankingPointInfo(red_rp=_rp_value(red), blue_rp=_rp_value(blue))


class BonusRankingSchema(FlatRankingSchema):
    """``rp`` total plus named bonus flags (label, breakdown field)."""

    def __init__(self, *bonuses: Tuple[str, str]):
        self.bonuses: Sequence[Tuple[str, str]] = bonuses

    def _breakdown(self, side: Mapping[str, Any]) -> Dict[str, bool]:
        return {label: bool(side.get(source) or False) for label, source in self.bonuses}

    def extract(self, red: Mapping[str, Any], blue: Mapping[str, Any]) -> RankingPointInfo:
        return RankingPointInfo(
            red_rp=_rp_value(red),
            blue_rp=_rp_value(blue),
            red_breakdown=self._breakdown(red),
            blue_breakdown=self._breakdown(blue),
        )


RANKING_POINT_SCHEMAS: Dict[int, FlatRankingSchema] = {
    # REEFSCAPE
    2025: BonusRankingSchema(
        ("Barge Bonus", "bargeBonusAchieved"),
        ("Coral Bonus", "coralBonusAchieved"),
    ),
}

DEFAULT_SCHEMA = FlatRankingSchema()


def schema_for_year(year: Optional[int]) -> FlatRankingSchema:
    return RANKING_POINT_SCHEMAS.get(year, DEFAULT_SCHEMA)


def extract_ranking_points(score_breakdown: Any, year: Optional[int]) -> Optional[RankingPointInfo]:
    """
    Ranking points for both alliances.

    Args:
        score_breakdown: TBA ``score_breakdown`` with ``red`` and ``blue`` objects
        year: Competition season, selects the schema

    Returns:
        RankingPointInfo, or None when either alliance side is missing or
        not a mapping
    """
    if not isinstance(score_breakdown, Mapping):
        return None
    red, blue = score_breakdown.get("red"), score_breakdown.get("blue")
    if not isinstance(red, Mapping) or not isinstance(blue, Mapping):
        return None

    try:
        return schema_for_year(year).extract(red, blue)
    except Exception as e:
        logger.warning(f"Could not extract ranking points for {year}: {e}")
        return None


def get_team_ranking_points(
    score_breakdown: Any,
    year: Optional[int],
    team_key: str,
    red_team_keys: Sequence[str],
    blue_team_keys: Sequence[str],
) -> Optional[TeamRankingPoints]:
    """Ranking points earned by one team's alliance; None if the team did not play."""
    info = extract_ranking_points(score_breakdown, year)
    if info is None:
        return None

    if team_key in (red_team_keys or ()):
        return TeamRankingPoints(info.red_rp, info.red_breakdown)
    if team_key in (blue_team_keys or ()):
        return TeamRankingPoints(info.blue_rp, info.blue_breakdown)
    return None
