"""Google Calendar API wrapper - OAuth, token refresh and task <-> event mapping."""

import os
from datetime import date, timedelta
from typing import Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from cyra_kanban.services.recurrence import build_rule
from cyra_kanban.utils.errors import InternalError, MissingDueDate, TokenRefreshFailed, UpstreamFailure
from cyra_kanban.utils.logging import get_structured_logger
from cyra_kanban.utils.timezones import is_date_only, parse_instant, to_utc_iso

logger = get_structured_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_APP_URL = "https://cyra-kanban.vercel.app"

EVENT_SOURCE = "cyra-kanban"
TASK_ID_PROPERTY = "kanban_task_id"
SOURCE_PROPERTY = "kanban_source"

DEFAULT_EVENT_DURATION = timedelta(hours=1)

# Google Calendar event colorIds: 11 Tomato, 5 Banana, 2 Sage
PRIORITY_COLOR_IDS = {
    "high": "11",
    "medium": "5",
    "low": "2",
}


def get_app_url() -> str:
    url = os.environ.get("APP_URL") or os.environ.get("NEXT_PUBLIC_APP_URL") or DEFAULT_APP_URL
    return url.rstrip("/")


def get_redirect_uri() -> str:
    return os.environ.get("GOOGLE_REDIRECT_URI") or f"{get_app_url()}/api/auth/google/callback"


def _client_credentials() -> tuple[str, str]:
    client_id = os.environ.get("GOOGLE_CLIENT_ID", "").strip()
    client_secret = os.environ.get("GOOGLE_CLIENT_SECRET", "").strip()
    if not client_id or not client_secret:
        raise InternalError("Google OAuth credentials not configured")
    return client_id, client_secret


def _status_of(error: HttpError) -> Optional[int]:
    return getattr(error, "status_code", None) or getattr(error.resp, "status", None)


def get_oauth_flow() -> Flow:
    """OAuth authorization-code flow for the web client."""
    client_id, client_secret = _client_credentials()
    return Flow.from_client_config(
        {
            "web": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
            }
        },
        scopes=SCOPES,
        redirect_uri=get_redirect_uri(),
        autogenerate_code_verifier=False,
    )


def get_auth_url(state: str) -> str:
    """Consent URL; offline access so Google returns a refresh token."""
    flow = get_oauth_flow()
    url, _ = flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",
        state=state,
    )
    return url


def exchange_code(code: str) -> Credentials:
    """Trade an authorization code for credentials."""
    flow = get_oauth_flow()
    try:
        flow.fetch_token(code=code)
    except Exception as e:
        logger.error("Token exchange failed", error=str(e))
        raise UpstreamFailure("Token exchange failed") from e
    return flow.credentials


def get_calendar_client(access_token: str, refresh_token: Optional[str] = None):
    """Calendar v3 service bound to a user's tokens."""
    credentials = Credentials(
        token=access_token,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=os.environ.get("GOOGLE_CLIENT_ID"),
        client_secret=os.environ.get("GOOGLE_CLIENT_SECRET"),
        scopes=SCOPES,
    )
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def refresh_access_token(refresh_token: str) -> str:
    """Exchange a refresh token for a fresh access token."""
    client_id, client_secret = _client_credentials()
    credentials = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=SCOPES,
    )
    try:
        credentials.refresh(GoogleAuthRequest())
    except GoogleAuthError as e:
        logger.error("Token refresh failed", error=str(e))
        raise TokenRefreshFailed() from e
    if not credentials.token:
        raise TokenRefreshFailed()
    return credentials.token


def build_event_payload(task: dict, tz_name: Optional[str] = None) -> dict:
    """
    Map a task onto a Calendar event body.

    Date-only tasks become all-day events, everything else a one-hour block.
    The task id rides along in private extended properties for reverse sync.
    """
    event_date = task.get("event_date")
    if not event_date:
        raise MissingDueDate()

    event: dict = {
        "summary": task.get("title"),
        "extendedProperties": {
            "private": {
                TASK_ID_PROPERTY: task.get("id"),
                SOURCE_PROPERTY: EVENT_SOURCE,
            }
        },
    }
    if task.get("description"):
        event["description"] = task["description"]

    color_id = PRIORITY_COLOR_IDS.get(task.get("priority") or "")
    if color_id:
        event["colorId"] = color_id

    if is_date_only(event_date):
        day = date.fromisoformat(event_date.strip())
        # All-day end dates are exclusive
        event["start"] = {"date": day.isoformat()}
        event["end"] = {"date": (day + timedelta(days=1)).isoformat()}
    else:
        start = parse_instant(event_date)
        zone = tz_name or "UTC"
        event["start"] = {"dateTime": to_utc_iso(start), "timeZone": zone}
        event["end"] = {"dateTime": to_utc_iso(start + DEFAULT_EVENT_DURATION), "timeZone": zone}

    rule = build_rule(task, None if is_date_only(event_date) else tz_name)
    if rule:
        event["recurrence"] = [f"RRULE:{rule}"]

    return event


def sync_task_to_calendar(task: dict, calendar, calendar_id: str = "primary", tz_name: Optional[str] = None) -> str:
    """
    Create or update the task's event and return its id.

    An existing event id means patch-in-place, so repeating the call does not
    create duplicates. An event deleted on Google's side is recreated.
    """
    body = build_event_payload(task, tz_name)
    event_id = task.get("google_calendar_event_id")

    try:
        if event_id:
            try:
                response = calendar.events().patch(
                    calendarId=calendar_id,
                    eventId=event_id,
                    body=body,
                ).execute()
            except HttpError as e:
                if _status_of(e) not in (404, 410):
                    raise
                logger.warning("Calendar event missing, recreating", task_id=task.get("id"), event_id=event_id)
                response = calendar.events().insert(calendarId=calendar_id, body=body).execute()
        else:
            response = calendar.events().insert(calendarId=calendar_id, body=body).execute()
    except HttpError as e:
        raise UpstreamFailure(f"Google Calendar API error ({_status_of(e)})") from e

    logger.info(
        "Task synced to calendar",
        task_id=task.get("id"),
        event_id=response.get("id"),
        action="updated" if event_id else "created"
    )
    return response["id"]


def delete_calendar_event(event_id: str, calendar, calendar_id: str = "primary") -> None:
    """Delete an event; one that is already gone counts as deleted."""
    try:
        calendar.events().delete(calendarId=calendar_id, eventId=event_id).execute()
    except HttpError as e:
        if _status_of(e) in (404, 410):
            logger.info("Calendar event already deleted", event_id=event_id)
            return
        raise UpstreamFailure(f"Google Calendar API error ({_status_of(e)})") from e


def list_calendars(calendar) -> list[dict]:
    try:
        response = calendar.calendarList().list().execute()
    except HttpError as e:
        raise UpstreamFailure(f"Google Calendar API error ({_status_of(e)})") from e
    return response.get("items", [])


def find_primary_calendar_id(calendar) -> str:
    """Primary calendar id, else the first listed, else ``primary``."""
    items = list_calendars(calendar)
    primary = next((c for c in items if c.get("primary")), None) or (items[0] if items else None)
    return primary.get("id", "primary") if primary else "primary"


def fetch_events(
    calendar,
    calendar_id: str,
    time_min: str,
    time_max: str,
    single_events: bool = True,
    task_events_only: bool = False,
) -> list[dict]:
    """Raw events in a window (recurring events expanded unless ``single_events`` is off)."""
    params = {
        "calendarId": calendar_id,
        "timeMin": time_min,
        "timeMax": time_max,
        "singleEvents": single_events,
        "maxResults": 250,
    }
    if single_events:
        params["orderBy"] = "startTime"
    if task_events_only:
        params["privateExtendedProperty"] = f"{SOURCE_PROPERTY}={EVENT_SOURCE}"

    try:
        response = calendar.events().list(**params).execute()
    except HttpError as e:
        if _status_of(e) == 401:
            raise UpstreamFailure("Google Calendar authorization expired") from e
        raise UpstreamFailure(f"Google Calendar API error ({_status_of(e)})") from e
    return response.get("items", [])


def format_event(event: dict) -> dict:
    """Event shape served to the calendar view."""
    start = event.get("start") or {}
    end = event.get("end") or {}
    return {
        "id": event.get("id", ""),
        "title": event.get("summary") or "(No title)",
        "description": event.get("description"),
        "start": start.get("dateTime") or start.get("date") or "",
        "end": end.get("dateTime") or end.get("date") or "",
        "is_all_day": bool(start.get("date")),
        "location": event.get("location"),
        "hangout_link": event.get("hangoutLink"),
        "task_id": task_id_of(event),
        "source": "google",
    }


def task_id_of(event: dict) -> Optional[str]:
    private = (event.get("extendedProperties") or {}).get("private") or {}
    return private.get(TASK_ID_PROPERTY)


def event_to_task_fields(event: dict) -> Optional[dict]:
    """
    Task fields carried by an event that was edited on Google's side.

    Returns None for events that did not originate from a task.
    """
    if not task_id_of(event):
        return None
    fields: dict = {}
    if event.get("summary"):
        fields["title"] = event["summary"]
    if event.get("description"):
        fields["description"] = event["description"]
    start = event.get("start") or {}
    if start.get("dateTime"):
        fields["event_date"] = start["dateTime"]
    elif start.get("date"):
        fields["event_date"] = start["date"]
    return fields


def list_events(calendar, calendar_id: str, time_min: str, time_max: str) -> list[dict]:
    """Formatted events in a window for the calendar view."""
    return [format_event(e) for e in fetch_events(calendar, calendar_id, time_min, time_max)]
