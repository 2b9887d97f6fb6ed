"""
Recurrence expansion for repeating tasks.

Thin layer over ``dateutil.rrule``: a task's ``recurrence_rule`` is anchored
at its ``event_date`` and expanded over a half-open window ``[start, end)``.
Timed tasks repeat on the owner's wall clock, so BYDAY and DST follow the
owner's zone; all-day tasks repeat on plain dates. Nothing here touches
storage, so every function is safe to call repeatedly with the same inputs.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dateutil.rrule import rrule, rrulestr

from cyra_kanban.models.task import RecurrencePattern
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.logging import get_structured_logger
from cyra_kanban.utils.timezones import event_anchor, get_zone, is_date_only, parse_instant, to_utc_iso, utc_now

logger = get_structured_logger(__name__)

INSTANCE_SEPARATOR = "_instance_"

_FREQ_TO_PATTERN = {
    "DAILY": RecurrencePattern.DAILY,
    "WEEKLY": RecurrencePattern.WEEKLY,
    "MONTHLY": RecurrencePattern.MONTHLY,
    "YEARLY": RecurrencePattern.YEARLY,
}

_PATTERN_LABELS = {
    RecurrencePattern.DAILY: "Daily",
    RecurrencePattern.WEEKLY: "Weekly",
    RecurrencePattern.MONTHLY: "Monthly",
    RecurrencePattern.YEARLY: "Yearly",
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _local_zone(tz_name: Optional[str]):
    """Zone the rule repeats in; UTC when no zone is given."""
    return get_zone(tz_name) if tz_name else timezone.utc


def _clean_rule(rule: str) -> str:
    body = rule.strip()
    if body.upper().startswith("RRULE:"):
        body = body[6:]
    parts = [p.strip() for p in body.split(";") if p.strip()]
    if not any(p.upper().startswith("FREQ=") for p in parts):
        parts.insert(0, "FREQ=DAILY")
    return ";".join(parts)


def parse_rrule(rule: Optional[str], dtstart: datetime) -> Optional[rrule]:
    """
    Parse an RRULE body anchored at ``dtstart``.

    An aware ``dtstart`` keeps its zone, so occurrences follow that zone's
    wall clock. A naive one is taken as UTC. A rule without FREQ defaults
    to daily. Unparseable rules yield None.
    """
    if not rule or not rule.strip():
        return None
    body = _clean_rule(rule)
    if dtstart.tzinfo is None:
        dtstart = dtstart.replace(tzinfo=timezone.utc)
    try:
        return rrulestr(body, dtstart=dtstart)
    except Exception as e:
        logger.warning("Failed to parse RRULE", rule=rule, error=str(e))
        return None


def _has_bound(rule: str) -> bool:
    upper = rule.upper()
    return "UNTIL=" in upper or "COUNT=" in upper


def _until_value(end_date: str, tz_name: Optional[str] = None) -> Optional[str]:
    """RRULE UNTIL in UTC; a date-only end includes that whole local day."""
    try:
        if is_date_only(end_date):
            d = date.fromisoformat(end_date.strip())
            end = datetime(d.year, d.month, d.day, 23, 59, 59, tzinfo=_local_zone(tz_name))
        else:
            end = parse_instant(end_date, tz_name)
    except (BadRequest, ValueError):
        logger.warning("Ignoring invalid recurrence end date", recurrence_end_date=end_date)
        return None
    return end.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def build_rule(task: dict, tz_name: Optional[str] = None) -> Optional[str]:
    """The task's rule, bounded by its end date or count when the rule is open-ended."""
    rule = task.get("recurrence_rule")
    if not rule or not rule.strip():
        return None
    rule = _clean_rule(rule)
    if _has_bound(rule):
        return rule
    if task.get("recurrence_end_date"):
        until = _until_value(task["recurrence_end_date"], tz_name)
        if until:
            return f"{rule};UNTIL={until}"
    if task.get("recurrence_count"):
        return f"{rule};COUNT={int(task['recurrence_count'])}"
    return rule


def _local_anchor(task: dict, tz_name: Optional[str]) -> datetime:
    """The task's anchor as wall-clock time in the zone it repeats in."""
    anchor = event_anchor(task["event_date"])
    if is_date_only(task["event_date"]):
        return anchor
    return anchor.astimezone(_local_zone(tz_name))


def _task_rrule(
    task: dict,
    tz_name: Optional[str] = None,
    fallback_anchor: Optional[datetime] = None,
) -> Optional[rrule]:
    rule = build_rule(task, None if is_date_only(task.get("event_date")) else tz_name)
    if not rule:
        return None
    if task.get("event_date"):
        try:
            anchor = _local_anchor(task, tz_name)
        except BadRequest:
            logger.warning("Ignoring task with invalid event_date", task_id=task.get("id"))
            return None
    elif fallback_anchor is not None:
        anchor = fallback_anchor
    else:
        return None
    return parse_rrule(rule, anchor)


def occurrences(task: dict, start: datetime, end: datetime, tz_name: Optional[str] = None) -> list[datetime]:
    """
    Ordered, duplicate-free occurrence instants (UTC) in ``[start, end)``.

    Timed tasks repeat at the same wall-clock time in ``tz_name``.
    """
    parsed = _task_rrule(task, tz_name)
    if parsed is None:
        return []
    start_utc, end_utc = _as_utc(start), _as_utc(end)
    if end_utc <= start_utc:
        return []
    found = parsed.between(start_utc, end_utc, inc=True)
    return sorted({_as_utc(d) for d in found if _as_utc(d) < end_utc})


def _instance_event_date(task: dict, occurrence: datetime) -> str:
    if is_date_only(task.get("event_date")):
        return _as_utc(occurrence).date().isoformat()
    return to_utc_iso(occurrence)


def instance_id(task_id: str, occurrence: datetime, tz_name: Optional[str] = None) -> str:
    """Synthetic id keyed by the occurrence's local date."""
    day = _as_utc(occurrence).astimezone(_local_zone(tz_name)).date()
    return f"{task_id}{INSTANCE_SEPARATOR}{day.isoformat()}"


def resolve_task_id(task_id: str) -> str:
    """Map a synthetic instance id back to the stored task id."""
    return task_id.split(INSTANCE_SEPARATOR, 1)[0]


def _instance(task: dict, occurrence: datetime, tz_name: Optional[str] = None) -> dict:
    # All-day occurrences sit at UTC midnight and keep their UTC date
    zone = None if is_date_only(task.get("event_date")) else tz_name
    return dict(
        task,
        id=instance_id(task["id"], occurrence, zone),
        event_date=_instance_event_date(task, occurrence),
        original_task_id=task["id"],
        is_recurring_instance=True,
    )


def generate_instances(task: dict, start: datetime, end: datetime, tz_name: Optional[str] = None) -> list[dict]:
    """Read-only task copies, one per occurrence in the window."""
    return [_instance(task, occurrence, tz_name) for occurrence in occurrences(task, start, end, tz_name)]


def next_occurrence(
    task: dict,
    after: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Optional[datetime]:
    """First occurrence strictly after ``after`` (default: now)."""
    parsed = _task_rrule(task, tz_name)
    if parsed is None:
        return None
    found = parsed.after(_as_utc(after or utc_now()), inc=False)
    return _as_utc(found) if found else None


def month_occurrences(task: dict, year: int, month: int, tz_name: Optional[str] = None) -> list[datetime]:
    zone = _local_zone(tz_name)
    start = datetime(year, month, 1, tzinfo=zone)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=zone)
    else:
        end = datetime(year, month + 1, 1, tzinfo=zone)
    return occurrences(task, start, end, tz_name)


def has_recurrence_ended(task: dict, now: Optional[datetime] = None, tz_name: Optional[str] = None) -> bool:
    """True when the task no longer produces future occurrences."""
    if not task.get("recurrence_rule"):
        return True
    now = _as_utc(now or utc_now())

    end_date = task.get("recurrence_end_date")
    if end_date:
        until = _until_value(end_date, tz_name)
        if until:
            return now > datetime.strptime(until, "%Y%m%dT%H%M%SZ").replace(tzinfo=timezone.utc)

    parsed = _task_rrule(task, tz_name, fallback_anchor=now)
    if parsed is None:
        return True
    return parsed.after(now, inc=False) is None


def pattern_from_rule(rule: Optional[str]) -> Optional[RecurrencePattern]:
    if not rule:
        return None
    match = re.search(r"FREQ=([A-Z]+)", rule.upper())
    return _FREQ_TO_PATTERN.get(match.group(1)) if match else None


def describe_recurrence(task: dict) -> str:
    """Human-readable summary such as ``Weekly until 6/1/2025`` or ``Daily for 5 times``."""
    pattern = task.get("recurrence_pattern")
    try:
        pattern = RecurrencePattern(pattern) if pattern else pattern_from_rule(task.get("recurrence_rule"))
    except ValueError:
        pattern = pattern_from_rule(task.get("recurrence_rule"))
    if pattern is None:
        return ""

    parts = [_PATTERN_LABELS[pattern]]
    end_date = task.get("recurrence_end_date")
    if end_date:
        try:
            d = date.fromisoformat(end_date) if is_date_only(end_date) else parse_instant(end_date).date()
            parts.append(f"until {d.month}/{d.day}/{d.year}")
        except (BadRequest, ValueError):
            pass
    elif task.get("recurrence_count"):
        parts.append(f"for {task['recurrence_count']} times")
    return " ".join(parts)


def expand_recurring_tasks(
    tasks: list[dict],
    start: datetime,
    end: datetime,
    tz_name: Optional[str] = None,
) -> list[dict]:
    """
    Flatten tasks for a calendar window.

    Non-recurring tasks pass through. A recurring task contributes itself when
    its anchor falls in the window, plus one instance per other occurrence.
    Recurrence follows the wall clock of ``tz_name`` (the owner's zone).
    """
    start_utc, end_utc = _as_utc(start), _as_utc(end)
    expanded: list[dict] = []
    recurring: list[dict] = []

    for task in tasks:
        if task.get("recurrence_rule") and task.get("event_date"):
            recurring.append(task)
        else:
            expanded.append(task)

    for task in recurring:
        try:
            anchor = event_anchor(task["event_date"])
        except BadRequest:
            continue
        anchor_in_window = start_utc <= anchor < end_utc
        if anchor_in_window:
            expanded.append(task)
        for occurrence in occurrences(task, start_utc, end_utc, tz_name):
            if anchor_in_window and occurrence == anchor:
                continue
            expanded.append(_instance(task, occurrence, tz_name))

    return expanded


def default_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Calendar window used when a caller gives none: this month plus the next."""
    now = _as_utc(now or utc_now())
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    end = (start + timedelta(days=32)).replace(day=1)
    end = (end + timedelta(days=32)).replace(day=1)
    return start, end
