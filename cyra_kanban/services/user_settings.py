"""User settings service - Google Calendar integration state and OAuth tokens."""

from datetime import datetime, timedelta
from typing import Optional

from dateutil import tz

from cyra_kanban.models.user_settings import SettingsUpdate, UserSettings
from cyra_kanban.services.supabase_client import SupabaseClient, first_row
from cyra_kanban.utils.errors import BadRequest, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger, mask_user_id
from cyra_kanban.utils.timezones import default_timezone, to_utc_iso, utc_now

logger = get_structured_logger(__name__)

SETTINGS_TABLE = "user_settings"

# Google issues access tokens valid for one hour
ACCESS_TOKEN_LIFETIME = timedelta(hours=1)

DEFAULT_SETTINGS = {
    "google_calendar_enabled": False,
    "google_calendar_id": "primary",
    "google_calendar_sync_enabled": False,
    "google_access_token": None,
    "google_refresh_token": None,
    "google_token_expires_at": None,
    "timezone": None,
    "last_sync_at": None,
    "updated_at": None,
}


async def get_settings(owner_id: str) -> dict:
    """Full settings row (tokens included), with defaults when none exists."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(SETTINGS_TABLE)
                .select("*")
                .eq("user_id", owner_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to get user settings: {e}")

    settings = dict(DEFAULT_SETTINGS, user_id=owner_id)
    row = first_row(result)
    if row:
        settings.update({k: v for k, v in row.items() if v is not None})
    return settings


def public_settings(settings: dict) -> dict:
    """Settings safe to hand to the browser."""
    public = UserSettings.model_validate({k: v for k, v in settings.items() if v is not None}).public()
    public["google_calendar_id"] = public.get("google_calendar_id") or "primary"
    public["timezone"] = public.get("timezone") or default_timezone()
    return public


async def get_user_timezone(owner_id: str) -> str:
    settings = await get_settings(owner_id)
    return settings.get("timezone") or default_timezone()


async def _upsert(owner_id: str, values: dict) -> dict:
    row = dict(values, user_id=owner_id, updated_at=to_utc_iso(utc_now()))
    async with SupabaseClient() as client:
        try:
            result = client.table(SETTINGS_TABLE).upsert(row, on_conflict="user_id").execute()
        except Exception as e:
            raise SupabaseError(f"Failed to save user settings: {e}")
    return first_row(result) or row


async def update_settings(owner_id: str, update: SettingsUpdate) -> dict:
    """Apply a settings PATCH and return the public view."""
    values = update.model_dump(exclude_unset=True)
    if values.get("timezone") is not None and tz.gettz(values["timezone"]) is None:
        raise BadRequest(f"Unknown timezone: {values['timezone']}")
    if "google_calendar_id" in values and not values["google_calendar_id"]:
        values["google_calendar_id"] = "primary"

    await _upsert(owner_id, values)
    logger.info("Settings updated", owner_id=mask_user_id(owner_id), fields=sorted(values.keys()))
    return public_settings(await get_settings(owner_id))


async def store_google_tokens(
    owner_id: str,
    access_token: str,
    refresh_token: Optional[str],
    expires_at: Optional[datetime],
    calendar_id: str = "primary",
) -> dict:
    """Persist tokens from the OAuth callback and switch the integration on."""
    values = {
        "google_calendar_enabled": True,
        "google_calendar_id": calendar_id or "primary",
        "google_calendar_sync_enabled": True,
        "google_access_token": access_token,
        "google_token_expires_at": to_utc_iso(expires_at) if expires_at else None,
        "last_sync_at": to_utc_iso(utc_now()),
    }
    # Google omits the refresh token on re-consent; keep the stored one
    if refresh_token:
        values["google_refresh_token"] = refresh_token
    row = await _upsert(owner_id, values)
    logger.info("Google tokens stored", owner_id=mask_user_id(owner_id), has_refresh_token=bool(refresh_token))
    return row


async def save_access_token(owner_id: str, access_token: str, now: Optional[datetime] = None) -> str:
    """Persist a refreshed access token; returns the new expiry."""
    expires_at = to_utc_iso((now or utc_now()) + ACCESS_TOKEN_LIFETIME)
    async with SupabaseClient() as client:
        try:
            client.table(SETTINGS_TABLE).update({
                "google_access_token": access_token,
                "google_token_expires_at": expires_at,
            }).eq("user_id", owner_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to save access token: {e}")
    return expires_at


async def touch_last_sync(owner_id: str) -> None:
    async with SupabaseClient() as client:
        try:
            client.table(SETTINGS_TABLE).update({
                "last_sync_at": to_utc_iso(utc_now()),
            }).eq("user_id", owner_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to update last sync time: {e}")


async def disconnect_google_calendar(owner_id: str) -> None:
    """Forget OAuth tokens and clear sync state from every task."""
    async with SupabaseClient() as client:
        try:
            client.table(SETTINGS_TABLE).update({
                "google_calendar_enabled": False,
                "google_calendar_sync_enabled": False,
                "google_access_token": None,
                "google_refresh_token": None,
                "google_token_expires_at": None,
            }).eq("user_id", owner_id).execute()

            client.table("tasks").update({
                "google_calendar_event_id": None,
                "google_calendar_sync_status": None,
                "google_calendar_synced_at": None,
                "google_calendar_error": None,
            }).eq("user_id", owner_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to disconnect Google Calendar: {e}")

    logger.info("Google Calendar disconnected", owner_id=mask_user_id(owner_id))
