"""Match ordering and state predicates.

TBA match keys do not sort usefully as strings (``2025txhou_f1m1`` would sort
before ``2025txhou_qm1``), so schedule order is derived from competition level,
set number and match number:

    qm (qualification) < ef < qf < sf < f, unknown levels last

Scores of ``-1`` (or missing) are TBA's placeholder for "not played yet".

All helpers accept ORM ``EventMatch`` rows or plain dicts with the same keys.
"""
from typing import Any, Iterable, List, NamedTuple, Optional

from app.utils.timezone import epoch_seconds

COMP_LEVEL_ORDER = {"qm": 1, "ef": 2, "qf": 3, "sf": 4, "f": 5}
UNKNOWN_COMP_LEVEL_RANK = 6
PLACEHOLDER_SCORE = -1


def _field(match: Any, name: str) -> Any:
    if isinstance(match, dict):
        return match.get(name)
    return getattr(match, name, None)


def comp_level_rank(comp_level: Optional[str]) -> int:
    return COMP_LEVEL_ORDER.get(comp_level or "", UNKNOWN_COMP_LEVEL_RANK)


def match_sort_key(match: Any) -> tuple:
    """(level rank, set number defaulting to 1, match number)."""
    set_number = _field(match, "set_number")
    return (
        comp_level_rank(_field(match, "comp_level")),
        set_number if set_number is not None else 1,
        _field(match, "match_number") or 0,
    )


def sort_matches(matches: Iterable[Any]) -> List[Any]:
    return sorted(matches, key=match_sort_key)


def is_placeholder_score(score: Optional[int]) -> bool:
    return score is None or score == PLACEHOLDER_SCORE


def team_keys(match: Any, alliance: str) -> List[str]:
    payload = _field(match, f"{alliance}_alliance") or {}
    return list(payload.get("team_keys") or [])


def involves_team(match: Any, team_key: str) -> bool:
    return team_key in team_keys(match, "red") or team_key in team_keys(match, "blue")


def alliance_color(match: Any, team_key: str) -> Optional[str]:
    if team_key in team_keys(match, "red"):
        return "red"
    if team_key in team_keys(match, "blue"):
        return "blue"
    return None


def is_upcoming(match: Any, now_epoch: Optional[int] = None) -> bool:
    """
    Eligible as a team's "next" match.

    True when both scores are placeholders, the scheduled time is unknown,
    or the scheduled time is still in the future.
    """
    if now_epoch is None:
        now_epoch = epoch_seconds()

    scheduled = _field(match, "time")
    if scheduled is None or scheduled > now_epoch:
        return True
    return (
        is_placeholder_score(_field(match, "red_score"))
        and is_placeholder_score(_field(match, "blue_score"))
    )


def is_completed(match: Any) -> bool:
    """Eligible as a team's "last" match: result posted or both scores real."""
    if _field(match, "post_result_time") is not None:
        return True
    red, blue = _field(match, "red_score"), _field(match, "blue_score")
    return red is not None and blue is not None and red > PLACEHOLDER_SCORE and blue > PLACEHOLDER_SCORE


def find_next_match(matches: Iterable[Any], now_epoch: Optional[int] = None) -> Optional[Any]:
    """First upcoming match in schedule order."""
    for match in sort_matches(matches):
        if is_upcoming(match, now_epoch):
            return match
    return None


def find_last_match(matches: Iterable[Any]) -> Optional[Any]:
    """Latest completed match in schedule order."""
    for match in reversed(sort_matches(matches)):
        if is_completed(match):
            return match
    return None


class Turnaround(NamedTuple):
    seconds: int
    alliance_color: str


def compute_turnaround(
    team_matches: List[Any],
    next_match: Any,
    team_key: str,
) -> Optional[Turnaround]:
    """
    Time between the team's next match and the one after it.

    Args:
        team_matches: The team's matches at the event (any order)
        next_match: The team's next match
        team_key: e.g. ``frc1806``

    Returns:
        Turnaround with the predicted-time difference in seconds and the
        team's alliance color in the *following* match, or None when there
        is no following match or either predicted time is unknown
    """
    ordered = sort_matches(team_matches)
    next_key = _field(next_match, "match_key")
    keys = [_field(m, "match_key") for m in ordered]
    if next_key not in keys:
        return None

    index = keys.index(next_key)
    if index >= len(ordered) - 1:
        return None

    following = ordered[index + 1]
    next_time = _field(next_match, "predicted_time")
    following_time = _field(following, "predicted_time")
    if next_time is None or following_time is None:
        return None

    color = alliance_color(following, team_key) or "blue"
    return Turnaround(following_time - next_time, color)
