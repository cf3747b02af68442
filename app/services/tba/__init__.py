"""The Blue Alliance API client, payload models and team history stats."""

from app.services.tba.client import TbaApiClient, TbaApiError, TbaConfigurationError

__all__ = ["TbaApiClient", "TbaApiError", "TbaConfigurationError"]
