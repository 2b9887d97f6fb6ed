"""
Calendar sync orchestration.

Ties the task store, user settings and the Google Calendar adapter together:
token freshness, per-task sync status bookkeeping, side effects of deletes
and the reverse (Google -> task) pull.
"""

from datetime import datetime, timedelta
from typing import Optional

from cyra_kanban.models.task import SyncStatus
from cyra_kanban.services import google_calendar
from cyra_kanban.services.attachments import remove_task_attachments
from cyra_kanban.services.recurrence import default_window
from cyra_kanban.services.task_store import delete_task, get_task, set_sync_status, update_task
from cyra_kanban.services.user_settings import get_settings, save_access_token, touch_last_sync
from cyra_kanban.utils.errors import (
    BadRequest,
    KanbanError,
    MissingDueDate,
    NotFound,
    TokenRefreshFailed,
    UpstreamFailure,
)
from cyra_kanban.utils.logging import get_structured_logger, log_timing, mask_user_id, timed
from cyra_kanban.utils.timezones import default_timezone, parse_instant, to_utc_iso, utc_now

logger = get_structured_logger(__name__)

# Refresh this long before the stored expiry
REFRESH_MARGIN = timedelta(minutes=5)


def is_connected(settings: dict) -> bool:
    return bool(settings.get("google_calendar_enabled")) and bool(
        settings.get("google_access_token") or settings.get("google_refresh_token")
    )


def auto_sync_enabled(settings: dict) -> bool:
    return is_connected(settings) and bool(settings.get("google_calendar_sync_enabled"))


async def ensure_access_token(owner_id: str, settings: dict, now: Optional[datetime] = None) -> str:
    """
    Return a usable access token, refreshing it when it is about to expire.

    A refreshed token is persisted before it is handed out.
    """
    now = now or utc_now()
    token = settings.get("google_access_token")
    expires_at = settings.get("google_token_expires_at")

    expiring = not token
    if token and expires_at:
        expiring = parse_instant(expires_at) - now < REFRESH_MARGIN
    if not expiring:
        return token

    refresh_token = settings.get("google_refresh_token")
    if not refresh_token:
        logger.warning("Access token expired with no refresh token", owner_id=mask_user_id(owner_id))
        raise TokenRefreshFailed("Google Calendar authorization expired; reconnect required")

    new_token = google_calendar.refresh_access_token(refresh_token)
    settings["google_token_expires_at"] = await save_access_token(owner_id, new_token, now)
    settings["google_access_token"] = new_token
    logger.info("Access token refreshed", owner_id=mask_user_id(owner_id))
    return new_token


async def get_connected_calendar(owner_id: str):
    """``(calendar_client, calendar_id, settings)`` for a connected user."""
    settings = await get_settings(owner_id)
    if not is_connected(settings):
        raise BadRequest("Google Calendar not connected")
    token = await ensure_access_token(owner_id, settings)
    calendar = google_calendar.get_calendar_client(token, settings.get("google_refresh_token"))
    return calendar, settings.get("google_calendar_id") or "primary", settings


async def sync_task(owner_id: str, task_id: str) -> dict:
    """
    Push one task to Google Calendar and record the outcome on the task.

    The task is marked pending first; afterwards it is always left either
    synced or error. Failures are re-raised after being recorded.
    """
    task = await get_task(task_id, owner_id)
    if not task.get("event_date"):
        raise MissingDueDate()

    try:
        calendar, calendar_id, settings = await get_connected_calendar(owner_id)
    except TokenRefreshFailed as e:
        await set_sync_status(task_id, owner_id, SyncStatus.ERROR, error=e.message)
        raise
    await set_sync_status(task_id, owner_id, SyncStatus.PENDING)

    try:
        with log_timing("calendar_sync", logger, task_id=task_id):
            event_id = google_calendar.sync_task_to_calendar(
                task,
                calendar,
                calendar_id,
                settings.get("timezone") or default_timezone(),
            )
    except Exception as e:
        message = e.message if isinstance(e, KanbanError) else str(e)
        await set_sync_status(task_id, owner_id, SyncStatus.ERROR, error=message)
        logger.error("Calendar sync failed", task_id=task_id, error=message)
        if isinstance(e, UpstreamFailure):
            raise
        raise UpstreamFailure(message) from e

    synced = await set_sync_status(task_id, owner_id, SyncStatus.SYNCED, event_id=event_id)
    await touch_last_sync(owner_id)
    return synced


async def sync_after_write(owner_id: str, task: dict) -> dict:
    """
    Auto-sync hook for the create/update paths.

    An undated task loses its calendar event whenever the calendar is
    connected, even with auto-sync off. Never raises: a failed sync is left
    on the task as an error status so the task write itself still succeeds.
    """
    settings = await get_settings(owner_id)
    if not is_connected(settings):
        return task

    task_id = task["id"]
    if not task.get("event_date"):
        if task.get("google_calendar_event_id"):
            try:
                return await unsync_task(owner_id, task_id)
            except Exception as e:
                logger.warning("Failed to unsync undated task", task_id=task_id, error=str(e))
        return task

    if not auto_sync_enabled(settings):
        return task

    try:
        return await sync_task(owner_id, task_id)
    except Exception as e:
        message = e.message if isinstance(e, KanbanError) else str(e)
        logger.warning("Auto-sync failed; task saved", task_id=task_id, error=message)
        try:
            current = await get_task(task_id, owner_id)
            if current.get("google_calendar_sync_status") != SyncStatus.ERROR.value:
                current = await set_sync_status(task_id, owner_id, SyncStatus.ERROR, error=message)
            return current
        except Exception as status_error:
            logger.error("Failed to record sync error", task_id=task_id, error=str(status_error))
            return task


async def _delete_event_best_effort(owner_id: str, event_id: str) -> None:
    try:
        calendar, calendar_id, _ = await get_connected_calendar(owner_id)
        google_calendar.delete_calendar_event(event_id, calendar, calendar_id)
    except Exception as e:
        logger.warning("Failed to delete calendar event", event_id=event_id, error=str(e))


async def unsync_task(owner_id: str, task_id: str) -> dict:
    """Remove the task's event (best effort) and clear its sync fields."""
    task = await get_task(task_id, owner_id)
    if task.get("google_calendar_event_id"):
        await _delete_event_best_effort(owner_id, task["google_calendar_event_id"])
    return await set_sync_status(task_id, owner_id, None, event_id=None)


async def delete_task_with_side_effects(owner_id: str, task_id: str) -> None:
    """Delete a task along with its calendar event and stored attachments."""
    task = await get_task(task_id, owner_id)

    if task.get("google_calendar_event_id"):
        await _delete_event_best_effort(owner_id, task["google_calendar_event_id"])

    try:
        await remove_task_attachments(owner_id, task_id)
    except Exception as e:
        logger.warning("Failed to remove attachment objects", task_id=task_id, error=str(e))

    await delete_task(task_id, owner_id)


def _edited_since_sync(event: dict, task: dict) -> bool:
    updated = event.get("updated")
    synced_at = task.get("google_calendar_synced_at")
    if not updated or not synced_at:
        return True
    try:
        return parse_instant(updated) > parse_instant(synced_at)
    except BadRequest:
        return True


async def apply_calendar_event(owner_id: str, event: dict) -> Optional[dict]:
    """
    Copy an externally edited event back onto its task.

    Returns the updated task, or None when the event is not ours, the task is
    gone or nothing changed since the last sync. Does not trigger a forward
    sync.
    """
    task_id = google_calendar.task_id_of(event)
    fields = google_calendar.event_to_task_fields(event)
    if not task_id or fields is None:
        return None

    try:
        task = await get_task(task_id, owner_id)
    except NotFound:
        logger.info("Calendar event references a missing task", task_id=task_id, event_id=event.get("id"))
        return None

    if not _edited_since_sync(event, task):
        return None

    if fields:
        await update_task(task_id, owner_id, fields)
    return await set_sync_status(task_id, owner_id, SyncStatus.SYNCED, event_id=event.get("id"))


@timed("calendar_sync.pull_calendar_changes")
async def pull_calendar_changes(
    owner_id: str,
    time_min: Optional[str] = None,
    time_max: Optional[str] = None,
) -> dict:
    """Apply Google-side edits of task events in a window. Last sync wins."""
    calendar, calendar_id, _ = await get_connected_calendar(owner_id)
    time_min, time_max = _window(time_min, time_max)

    events = google_calendar.fetch_events(
        calendar,
        calendar_id,
        time_min,
        time_max,
        single_events=False,
        task_events_only=True,
    )

    updated = 0
    for event in events:
        if event.get("status") == "cancelled":
            continue
        if await apply_calendar_event(owner_id, event):
            updated += 1

    await touch_last_sync(owner_id)
    logger.info(
        "Calendar changes pulled",
        owner_id=mask_user_id(owner_id),
        events=len(events),
        updated=updated
    )
    return {"events": len(events), "updated": updated}


async def list_external_events(
    owner_id: str,
    time_min: Optional[str] = None,
    time_max: Optional[str] = None,
) -> list[dict]:
    """Formatted Google events for the calendar view."""
    calendar, calendar_id, _ = await get_connected_calendar(owner_id)
    time_min, time_max = _window(time_min, time_max)
    return google_calendar.list_events(calendar, calendar_id, time_min, time_max)


def _window(time_min: Optional[str], time_max: Optional[str]) -> tuple[str, str]:
    start, end = default_window()
    return (
        to_utc_iso(parse_instant(time_min)) if time_min else to_utc_iso(start),
        to_utc_iso(parse_instant(time_max)) if time_max else to_utc_iso(end),
    )
