"""
Config Repository for operator-editable event settings.

Usage:
    repo = ConfigRepository(db)
    api_key = repo.get_value("tba_api_key")
    repo.set_config("team_number", "1806", updated_by="admin")
    db.commit()
"""
from typing import List, Optional

from sqlalchemy import func

from app.core.config import settings
from app.core.logging import get_logger
from app.models import EventConfig
from app.repositories.base import BaseRepository

logger = get_logger(__name__)

# key -> (default value, description, is_encrypted)
DEFAULT_CONFIG = {
    "tba_api_key": ("", "The Blue Alliance read API key", True),
    "tba_webhook_secret": ("", "Shared secret for verifying TBA webhook signatures", True),
    "team_number": (settings.DEFAULT_TEAM_NUMBER, "FRC team number to track", False),
    "event_check_interval": ("3600", "Seconds between active-event checks", False),
    "match_check_interval": ("300", "Seconds between match/status refreshes", False),
    "enable_event_display": ("false", "Enable event tracking and the scheduler", False),
}


class ConfigRepository(BaseRepository[EventConfig]):
    """Repository for the event_config key/value table."""

    def __init__(self, db):
        super().__init__(EventConfig, db)

    def get_config(self, key: str) -> Optional[EventConfig]:
        return self.where_first(EventConfig.key == key)

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Config value, or `default` when the key is missing or has no value."""
        entry = self.get_config(key)
        if entry is None or entry.value is None:
            return default
        return entry.value

    def get_int(self, key: str, default: int) -> int:
        raw = self.get_value(key)
        try:
            return int(raw) if raw not in (None, "") else default
        except ValueError:
            logger.warning(f"Config '{key}' is not an integer ({raw!r}), using {default}")
            return default

    def set_config(
        self,
        key: str,
        value: Optional[str],
        description: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> EventConfig:
        """
        Create or update a config entry in one statement.

        An existing description is kept when `description` is None. The
        encrypted flag follows DEFAULT_CONFIG for known keys. Does not commit.
        """
        is_encrypted = DEFAULT_CONFIG.get(key, (None, None, False))[2]
        return self.upsert(
            {
                "key": key,
                "value": value,
                "description": description,
                "is_encrypted": is_encrypted,
                "updated_by": updated_by,
            },
            conflict_keys=["key"],
            update_fields=["value", "updated_by"],
            set_overrides=lambda stmt: {
                "description": func.coalesce(stmt.excluded.description, EventConfig.__table__.c.description),
            },
        )

    def get_all_config(self) -> List[EventConfig]:
        return self.query().order_by(EventConfig.key).all()

    def seed_defaults(self) -> int:
        """
        Insert any missing default entries; existing values are never touched.

        Returns:
            Number of entries created
        """
        existing = {row.key for row in self.get_all_config()}
        created = 0
        for key, (value, description, is_encrypted) in DEFAULT_CONFIG.items():
            if key in existing:
                continue
            self.create(key=key, value=value, description=description, is_encrypted=is_encrypted)
            created += 1

        if created:
            self.save()
            logger.info(f"Seeded {created} default event config entries")
        return created

    def is_event_display_enabled(self) -> bool:
        return (self.get_value("enable_event_display", "false") or "").strip().lower() == "true"
