"""Engine configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineSettings(BaseSettings):
    """Change-detection and reminder settings.

    Values come from ``EVENTWATCH_*`` environment variables or a local ``.env``
    file. Leaving ``state_dir`` unset keeps all state in memory.
    """

    # Persistence
    state_dir: str | None = Field(
        default=None,
        description="Directory for persisted rules, snapshots and schedule state",
    )

    # Scheduling
    staleness_window_minutes: int = Field(
        default=5,
        gt=0,
        description="Minutes after which previously scheduled reminders are cleared",
    )
    reminder_id_offset: int = Field(
        default=1000,
        description="First notification id handed out to scheduled reminders",
    )
    change_id_offset: int = Field(
        default=100_000,
        description="Base of the id space for immediate change notifications",
    )
    change_id_modulus: int = Field(
        default=10_000,
        gt=0,
        description="Event ids are folded into this many change notification ids",
    )
    fetch_days_ahead: int = Field(
        default=2,
        ge=0,
        description="Days after today covered by a background refresh",
    )

    # Current user (used by the static identity provider)
    person_id: str | None = Field(
        default=None,
        description="Current user's person identity as it appears in registrations",
    )
    couple_ids: list[str] = Field(
        default_factory=list,
        description="Couple identities the current user belongs to",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "EVENTWATCH_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_settings: EngineSettings | None = None


def get_settings() -> EngineSettings:
    """Return the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings
