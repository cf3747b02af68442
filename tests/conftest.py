"""Shared pytest fixtures for team event sync tests."""
import json
import sys
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Generator, List, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

TBA_BASE_URL = "https://tba.test/api/v3"
TEAM_KEY = "frc1806"


# =============================================================================
# FAKE TBA API
# =============================================================================

class FakeTbaApi:
    """
    In-memory stand-in for The Blue Alliance, served through httpx.MockTransport.

    Register responses by API path (below /api/v3); unknown paths return 404.
    """

    def __init__(self):
        self.routes: Dict[str, tuple] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, body: Any, status: int = 200) -> None:
        self.routes[path] = (status, body)

    def remove(self, path: str) -> None:
        self.routes.pop(path, None)

    @property
    def paths(self) -> List[str]:
        return [self._path(r) for r in self.requests]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path[len("/api/v3"):]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)
        if path not in self.routes:
            return httpx.Response(404, json={"Errors": [{"path": path}]})
        status, body = self.routes[path]
        # json=None would send an empty body; TBA sends a literal null
        return httpx.Response(
            status,
            content=json.dumps(body).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )


# =============================================================================
# PAYLOAD BUILDERS
# =============================================================================

def make_event(
    key: str = "2025txhou",
    start_date: str = "2025-03-20",
    end_date: str = "2025-03-22",
    timezone: Optional[str] = "America/Chicago",
    name: str = "FIT District Houston Event",
) -> Dict[str, Any]:
    """A TBA event payload."""
    return {
        "key": key,
        "name": name,
        "short_name": name.replace(" Event", ""),
        "event_code": key[4:],
        "event_type": 1,
        "event_type_string": "District",
        "district": {"abbreviation": "fit", "display_name": "FIRST In Texas", "key": "2025fit"},
        "city": "Houston",
        "state_prov": "TX",
        "country": "USA",
        "start_date": start_date,
        "end_date": end_date,
        "year": int(key[:4]),
        "week": 3,
        "timezone": timezone,
        "website": None,
        "first_event_id": None,
        "first_event_code": key[4:].upper(),
        "webcasts": [{"type": "twitch", "channel": "firstinspires"}],
        "division_keys": [],
        "parent_event_key": None,
        "playoff_type": 10,
    }


def make_match(
    key: str,
    red: List[str],
    blue: List[str],
    red_score: int = -1,
    blue_score: int = -1,
    time: Optional[int] = None,
    predicted_time: Optional[int] = None,
    post_result_time: Optional[int] = None,
    score_breakdown: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    A TBA match payload; comp level, set and match number come from the key.

    "2025txhou_qm12" -> qm, set 1, match 12; "2025txhou_sf2m1" -> sf, set 2, match 1.
    """
    event_key, suffix = key.split("_", 1)
    if suffix.startswith("qm"):
        comp_level, set_number, match_number = "qm", 1, int(suffix[2:])
    else:
        level_and_set, match_number = suffix.split("m", 1)
        comp_level = level_and_set.rstrip("0123456789")
        set_number = int(level_and_set[len(comp_level):])
        match_number = int(match_number)

    winning = ""
    if red_score > -1 and blue_score > -1 and red_score != blue_score:
        winning = "red" if red_score > blue_score else "blue"

    return {
        "key": key,
        "event_key": event_key,
        "comp_level": comp_level,
        "set_number": set_number,
        "match_number": match_number,
        "alliances": {
            "red": {"team_keys": red, "score": red_score, "surrogate_team_keys": [], "dq_team_keys": []},
            "blue": {"team_keys": blue, "score": blue_score, "surrogate_team_keys": [], "dq_team_keys": []},
        },
        "winning_alliance": winning,
        "time": time,
        "actual_time": None,
        "predicted_time": predicted_time,
        "post_result_time": post_result_time,
        "score_breakdown": score_breakdown,
        "videos": [],
    }


def make_status(rank: int = 4, num_teams: int = 38) -> Dict[str, Any]:
    """A TBA team event status payload during qualifications."""
    return {
        "qual": {
            "num_teams": num_teams,
            "status": "playing",
            "ranking": {
                "rank": rank,
                "qual_average": None,
                "matches_played": 6,
                "dq": 0,
                "record": {"wins": 5, "losses": 1, "ties": 0},
                "team_key": TEAM_KEY,
            },
        },
        "alliance": None,
        "playoff": None,
        "alliance_status_str": "--",
        "playoff_status_str": "--",
        "overall_status_str": f"Team 1806 is <b>Rank {rank}/{num_teams}</b>",
        "next_match_key": "2025txhou_qm20",
        "last_match_key": "2025txhou_qm14",
    }


def make_oprs(opr: float = 42.5, dpr: float = 18.25, ccwm: float = 24.25) -> Dict[str, Any]:
    return {
        "oprs": {TEAM_KEY: opr, "frc118": 61.0},
        "dprs": {TEAM_KEY: dpr, "frc118": 20.0},
        "ccwms": {TEAM_KEY: ccwm, "frc118": 41.0},
    }


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture(scope="function")
def session_factory() -> Generator[sessionmaker, None, None]:
    """
    Session factory bound to an isolated in-memory database.

    StaticPool keeps a single connection so every session (test code,
    scheduler jobs, request handlers) sees the same data.
    """
    from app.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)

    engine.dispose()


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Fresh session with the default event config seeded."""
    from app.repositories import ConfigRepository

    session = session_factory()
    ConfigRepository(session).seed_defaults()

    yield session

    session.close()


@pytest.fixture
def enable_tracking(db_session: Session):
    """Turn event tracking on with an API key configured."""
    from app.repositories import ConfigRepository

    config = ConfigRepository(db_session)
    config.set_config("enable_event_display", "true")
    config.set_config("tba_api_key", "test-key")
    db_session.commit()


# =============================================================================
# TBA CLIENT
# =============================================================================

@pytest.fixture
def tba_api() -> FakeTbaApi:
    return FakeTbaApi()


@pytest.fixture
def tba_client(tba_api: FakeTbaApi):
    """Real TbaApiClient wired to the fake API."""
    from app.services.tba.client import TbaApiClient

    return TbaApiClient(
        api_key="test-key",
        team_number="1806",
        base_url=TBA_BASE_URL,
        transport=httpx.MockTransport(tba_api.handler),
    )


@pytest.fixture
def sync_engine(db_session: Session, tba_client):
    from app.services.events.sync_engine import EventSyncEngine

    return EventSyncEngine(db_session, tba_client)


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture(scope="function")
async def async_client(db_session: Session, tba_client) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the FastAPI app with test dependencies."""
    from app.main import app
    from app.core.database import get_db
    from app.api.dependencies import get_event_scheduler, get_tba_client

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tba_client] = lambda: tba_client
    app.dependency_overrides[get_event_scheduler] = lambda: None
    app.state.limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
    app.state.limiter.enabled = True
