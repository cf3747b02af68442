"""
The Blue Alliance (TBA) API v3 client.

Read-only access to FRC event, match, status, rating and award data:
- Team events for a season (full and simple)
- Team status at an event (ranking, alliance, playoff record)
- Event matches, alliances and efficiency ratings (OPR/DPR/CCWM)
- Team awards, overall and per event

Auth: X-TBA-Auth-Key header. The key and team number are operator settings
stored in the event_config table; build the client with ``from_config`` and
rotate with ``update_api_key`` / ``update_team_number``.

There is no retry or caching here. Callers decide how to handle a failed
call (the sync engine turns it into a failed SyncResult; the next scheduled
pass tries again).
"""
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_tba_request
from app.services.tba.schemas import (
    TbaAward,
    TbaEvent,
    TbaEventOprs,
    TbaEventSimple,
    TbaMatch,
    TbaTeamEventStatus,
)

logger = get_logger(__name__)

_events_adapter = TypeAdapter(List[TbaEvent])
_events_simple_adapter = TypeAdapter(List[TbaEventSimple])
_matches_adapter = TypeAdapter(List[TbaMatch])
_awards_adapter = TypeAdapter(List[TbaAward])


class TbaApiError(Exception):
    """A TBA request failed (non-2xx status, network error or timeout)."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class TbaConfigurationError(TbaApiError):
    """No TBA API key is configured; raised before any network I/O."""


class TbaApiClient:
    """
    Async client for The Blue Alliance API.

    One instance is shared by the scheduler, webhook handling and HTTP
    routes. The underlying httpx.AsyncClient is created on first use.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        team_number: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the TBA client.

        Args:
            api_key: TBA read API key (may be empty; calls then raise
                TbaConfigurationError)
            team_number: FRC team number, e.g. "1806"
            base_url: API root (default settings.TBA_API_BASE_URL)
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key or ""
        self.team_number = str(team_number or settings.DEFAULT_TEAM_NUMBER)
        self.team_key = settings.team_key_for(self.team_number)
        self.base_url = (base_url or settings.TBA_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.TBA_API_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, db, **kwargs) -> "TbaApiClient":
        """Build a client from the stored tba_api_key and team_number."""
        from app.repositories import ConfigRepository

        config = ConfigRepository(db)
        return cls(
            api_key=config.get_value("tba_api_key", ""),
            team_number=config.get_value("team_number", settings.DEFAULT_TEAM_NUMBER),
            **kwargs,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def update_api_key(self, api_key: str) -> None:
        self.api_key = api_key or ""
        logger.info("TBA API key updated")

    def update_team_number(self, team_number: str) -> None:
        self.team_number = str(team_number).strip()
        self.team_key = settings.team_key_for(self.team_number)
        logger.info(f"Tracking team updated to {self.team_key}")

    def _resolve_team(self, team_key: Optional[str]) -> str:
        return settings.team_key_for(team_key) if team_key else self.team_key

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers={"Accept": "application/json", "User-Agent": settings.APP_NAME},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, endpoint: str) -> Any:
        """
        GET a TBA path and return the decoded JSON body.

        Args:
            path: Path below the API root, e.g. "/event/2025txhou/matches"
            endpoint: Metric label for the endpoint family

        Raises:
            TbaConfigurationError: No API key configured
            TbaApiError: Non-2xx response, network failure or timeout
        """
        if not self.api_key:
            record_tba_request(endpoint, "not_configured")
            raise TbaConfigurationError("TBA API key not configured", endpoint=endpoint)

        client = await self._get_client()
        try:
            response = await client.get(path, headers={"X-TBA-Auth-Key": self.api_key})
        except httpx.TimeoutException as e:
            record_tba_request(endpoint, "timeout")
            raise TbaApiError(f"TBA request timed out: {path}", endpoint=endpoint) from e
        except httpx.HTTPError as e:
            record_tba_request(endpoint, "network_error")
            raise TbaApiError(f"TBA request failed: {path}: {e}", endpoint=endpoint) from e

        if response.status_code >= 400:
            record_tba_request(endpoint, "not_found" if response.status_code == 404 else "http_error")
            raise TbaApiError(
                f"TBA returned {response.status_code} for {path}",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        record_tba_request(endpoint, "success")
        try:
            return response.json()
        except ValueError as e:
            raise TbaApiError(f"TBA returned invalid JSON for {path}", response.status_code, endpoint) from e

    # Events

    async def get_team_events(self, year: int, team_key: Optional[str] = None) -> List[TbaEvent]:
        """Events the team is registered for in a season."""
        data = await self._get(f"/team/{self._resolve_team(team_key)}/events/{year}", "team_events")
        return _events_adapter.validate_python(data or [])

    async def get_team_events_simple(self, team_key: Optional[str] = None) -> List[TbaEventSimple]:
        """Every event the team has ever been registered for."""
        data = await self._get(f"/team/{self._resolve_team(team_key)}/events/simple", "team_events_simple")
        return _events_simple_adapter.validate_python(data or [])

    async def get_event(self, event_key: str) -> TbaEvent:
        data = await self._get(f"/event/{event_key}", "event")
        return TbaEvent.model_validate(data)

    async def get_event_alliances(self, event_key: str) -> Optional[List[dict]]:
        """Playoff alliances; None before alliance selection."""
        return await self._get(f"/event/{event_key}/alliances", "event_alliances")

    # Team status and matches

    async def get_team_event_status(
        self,
        event_key: str,
        team_key: Optional[str] = None,
    ) -> Optional[TbaTeamEventStatus]:
        """The team's status at an event; None when TBA has nothing yet."""
        data = await self._get(
            f"/team/{self._resolve_team(team_key)}/event/{event_key}/status",
            "team_event_status",
        )
        if data is None:
            return None
        return TbaTeamEventStatus.model_validate(data)

    async def get_event_matches(self, event_key: str) -> List[TbaMatch]:
        data = await self._get(f"/event/{event_key}/matches", "event_matches")
        return _matches_adapter.validate_python(data or [])

    async def get_event_oprs(self, event_key: str) -> Optional[TbaEventOprs]:
        """OPR/DPR/CCWM for every team; None until TBA computes them."""
        data = await self._get(f"/event/{event_key}/oprs", "event_oprs")
        if not data:
            return None
        return TbaEventOprs.model_validate(data)

    # Awards

    async def get_team_awards(self, team_key: Optional[str] = None) -> List[TbaAward]:
        data = await self._get(f"/team/{self._resolve_team(team_key)}/awards", "team_awards")
        return _awards_adapter.validate_python(data or [])

    async def get_team_event_awards(self, event_key: str, team_key: Optional[str] = None) -> List[TbaAward]:
        data = await self._get(
            f"/team/{self._resolve_team(team_key)}/event/{event_key}/awards",
            "team_event_awards",
        )
        return _awards_adapter.validate_python(data or [])
