"""Timezone-aware parsing and normalization of task dates."""

import os
import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil import tz

from cyra_kanban.utils.errors import BadRequest

FALLBACK_TIMEZONE = "America/Chicago"

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def default_timezone() -> str:
    """IANA zone used when a user has not chosen one."""
    return os.environ.get("DEFAULT_TIMEZONE", "").strip() or FALLBACK_TIMEZONE


def get_zone(tz_name: Optional[str]):
    """Resolve an IANA zone id, falling back to the default zone."""
    zone = tz.gettz(tz_name) if tz_name else None
    if zone is None:
        zone = tz.gettz(default_timezone())
    return zone or tz.UTC


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_date_only(value: Optional[str]) -> bool:
    """True when a stored event_date carries no time component."""
    return bool(value) and bool(_DATE_ONLY.match(value.strip()))


def to_utc_iso(value: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_instant(value: Union[str, datetime, date], tz_name: Optional[str] = None) -> datetime:
    """
    Parse a timestamp into an aware UTC datetime.

    Naive values are interpreted as wall-clock time in ``tz_name`` so that
    daylight-saving transitions are applied by the zone database.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError, AttributeError):
            # Fall back to the fuzzy parser for human-written dates
            try:
                parsed = date_parser.parse(value)
            except (ValueError, OverflowError, TypeError) as e:
                raise BadRequest(f"Invalid date: {value}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_zone(tz_name))
    return parsed.astimezone(timezone.utc)


def normalize_event_date(value: Optional[Union[str, datetime, date]], tz_name: Optional[str] = None) -> Optional[str]:
    """
    Normalize an incoming event_date for storage.

    Date-only input stays ``YYYY-MM-DD`` (an all-day task). Anything with a
    time component is stored as a UTC instant.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        if is_date_only(value):
            try:
                return date.fromisoformat(value.strip()).isoformat()
            except ValueError as e:
                raise BadRequest(f"Invalid date: {value}") from e
    elif isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()

    return to_utc_iso(parse_instant(value, tz_name))


def event_anchor(value: str, tz_name: Optional[str] = None) -> datetime:
    """Anchor instant of a stored event_date (all-day dates anchor at UTC midnight)."""
    if is_date_only(value):
        d = date.fromisoformat(value.strip())
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    return parse_instant(value, tz_name)
