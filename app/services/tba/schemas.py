"""
Pydantic models for The Blue Alliance API v3 payloads.

Only the fields this service reads are declared; unknown fields are kept
(``extra="allow"``) so raw payloads survive a round trip into JSON columns.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TbaModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class TbaDistrict(TbaModel):
    abbreviation: Optional[str] = None
    display_name: Optional[str] = None
    key: str


class TbaEventSimple(TbaModel):
    key: str
    name: str
    event_code: str
    event_type: int
    city: Optional[str] = None
    state_prov: Optional[str] = None
    country: Optional[str] = None
    start_date: str
    end_date: str
    year: int
    district: Optional[TbaDistrict] = None


class TbaEvent(TbaEventSimple):
    short_name: Optional[str] = None
    event_type_string: Optional[str] = None
    week: Optional[int] = None
    address: Optional[str] = None
    location_name: Optional[str] = None
    timezone: Optional[str] = None
    website: Optional[str] = None
    first_event_id: Optional[str] = None
    first_event_code: Optional[str] = None
    webcasts: Optional[List[Dict[str, Any]]] = None
    division_keys: Optional[List[str]] = None
    parent_event_key: Optional[str] = None
    playoff_type: Optional[int] = None
    playoff_type_string: Optional[str] = None


class TbaRecord(TbaModel):
    wins: int = 0
    losses: int = 0
    ties: int = 0


class TbaQualRanking(TbaModel):
    rank: Optional[int] = None
    qual_average: Optional[float] = None
    matches_played: Optional[int] = None
    dq: Optional[int] = None
    record: Optional[TbaRecord] = None
    team_key: Optional[str] = None


class TbaQualStatus(TbaModel):
    ranking: Optional[TbaQualRanking] = None
    num_teams: Optional[int] = None
    status: Optional[str] = None


class TbaAllianceStatus(TbaModel):
    name: Optional[str] = None
    number: Optional[int] = None
    pick: Optional[int] = None
    backup: Optional[Dict[str, Any]] = None


class TbaPlayoffStatus(TbaModel):
    level: Optional[str] = None
    record: Optional[TbaRecord] = None
    current_level_record: Optional[TbaRecord] = None
    playoff_average: Optional[float] = None
    status: Optional[str] = None


class TbaTeamEventStatus(TbaModel):
    qual: Optional[TbaQualStatus] = None
    alliance: Optional[TbaAllianceStatus] = None
    playoff: Optional[TbaPlayoffStatus] = None
    alliance_status_str: Optional[str] = None
    playoff_status_str: Optional[str] = None
    overall_status_str: Optional[str] = None
    next_match_key: Optional[str] = None
    last_match_key: Optional[str] = None


class TbaMatchAlliance(TbaModel):
    score: Optional[int] = None
    team_keys: List[str] = Field(default_factory=list)
    surrogate_team_keys: List[str] = Field(default_factory=list)
    dq_team_keys: List[str] = Field(default_factory=list)


class TbaMatchAlliances(TbaModel):
    red: TbaMatchAlliance = Field(default_factory=TbaMatchAlliance)
    blue: TbaMatchAlliance = Field(default_factory=TbaMatchAlliance)


class TbaMatch(TbaModel):
    key: str
    event_key: str
    comp_level: str
    set_number: Optional[int] = None
    match_number: int
    alliances: TbaMatchAlliances = Field(default_factory=TbaMatchAlliances)
    winning_alliance: Optional[str] = None
    time: Optional[int] = None
    actual_time: Optional[int] = None
    predicted_time: Optional[int] = None
    post_result_time: Optional[int] = None
    score_breakdown: Optional[Dict[str, Any]] = None
    videos: Optional[List[Dict[str, Any]]] = None


class TbaEventOprs(TbaModel):
    oprs: Dict[str, Optional[float]] = Field(default_factory=dict)
    dprs: Dict[str, Optional[float]] = Field(default_factory=dict)
    ccwms: Dict[str, Optional[float]] = Field(default_factory=dict)

    def for_team(self, team_key: str) -> Dict[str, Optional[float]]:
        """The team's ratings; a team missing from a map is unknown (None)."""
        return {
            "opr": self.oprs.get(team_key),
            "dpr": self.dprs.get(team_key),
            "ccwm": self.ccwms.get(team_key),
        }


class TbaAwardRecipient(TbaModel):
    team_key: Optional[str] = None
    awardee: Optional[str] = None


class TbaAward(TbaModel):
    name: str
    award_type: int
    event_key: str
    year: int
    recipient_list: List[TbaAwardRecipient] = Field(default_factory=list)
