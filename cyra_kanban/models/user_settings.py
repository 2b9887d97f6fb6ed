"""User settings model - Google Calendar integration state, one row per user."""

from typing import Optional
from pydantic import BaseModel, Field

# Settings fields that are safe to return to the browser
PUBLIC_SETTINGS_FIELDS = (
    "google_calendar_enabled",
    "google_calendar_id",
    "google_calendar_sync_enabled",
    "timezone",
    "last_sync_at",
    "updated_at",
)


class UserSettings(BaseModel):
    user_id: str = Field(..., description="Owner ID (unique)")
    google_calendar_enabled: bool = False
    google_calendar_id: str = Field(default="primary", description="Calendar that receives task events")
    google_calendar_sync_enabled: bool = Field(default=False, description="Auto-sync on task writes")
    google_access_token: Optional[str] = None
    google_refresh_token: Optional[str] = None
    google_token_expires_at: Optional[str] = None
    timezone: Optional[str] = Field(None, description="IANA zone used for naive times")
    last_sync_at: Optional[str] = None
    updated_at: Optional[str] = None

    def public(self) -> dict:
        """Settings without OAuth tokens."""
        return self.model_dump(include=set(PUBLIC_SETTINGS_FIELDS))


class SettingsUpdate(BaseModel):
    google_calendar_sync_enabled: Optional[bool] = None
    google_calendar_id: Optional[str] = None
    timezone: Optional[str] = None
