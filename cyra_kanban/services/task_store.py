"""Task store - owner-scoped CRUD over the tasks table."""

from datetime import datetime, timedelta
from typing import Any, Optional

from cyra_kanban.models.task import ColumnId, CreatedBy, Priority, RecurrencePattern, SyncStatus
from cyra_kanban.services.supabase_client import SupabaseClient, all_rows, first_row
from cyra_kanban.services.user_settings import get_user_timezone
from cyra_kanban.utils.errors import BadRequest, NotFound, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger, mask_user_id
from cyra_kanban.utils.timezones import normalize_event_date, to_utc_iso, utc_now

logger = get_structured_logger(__name__)

TASKS_TABLE = "tasks"
ARCHIVE_RETENTION_DAYS = 7

# Columns a caller may overwrite through update_task
UPDATABLE_FIELDS = (
    "title",
    "description",
    "column_id",
    "position",
    "priority",
    "project",
    "client_id",
    "product_id",
    "event_date",
    "recurrence_rule",
    "recurrence_pattern",
    "recurrence_end_date",
    "recurrence_count",
)


def _validate_column(column_id: str) -> str:
    try:
        return ColumnId(column_id).value
    except ValueError:
        raise BadRequest(f"Invalid column: {column_id}")


def _validate_priority(priority: str) -> str:
    try:
        return Priority(priority).value
    except ValueError:
        raise BadRequest(f"Invalid priority: {priority}")


def _validate_pattern(pattern: Optional[str]) -> Optional[str]:
    if pattern is None or pattern == "":
        return None
    try:
        return RecurrencePattern(str(pattern).lower()).value
    except ValueError:
        raise BadRequest(f"Invalid recurrence pattern: {pattern}")


async def _normalize_dates(owner_id: str, fields: dict) -> dict:
    """Normalize event_date / recurrence_end_date in place using the owner's zone."""
    date_keys = [k for k in ("event_date", "recurrence_end_date") if fields.get(k)]
    if not date_keys:
        return fields
    tz_name = await get_user_timezone(owner_id)
    for key in date_keys:
        fields[key] = normalize_event_date(fields[key], tz_name)
    return fields


async def next_position(owner_id: str, column_id: str) -> float:
    """
    Position that appends to the end of a column.

    Read-then-write: callers insert in a separate round trip, so two
    concurrent writers can compute the same value.
    """
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TASKS_TABLE)
                .select("position")
                .eq("user_id", owner_id)
                .eq("column_id", column_id)
                .order("position", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to read max position: {e}")

    row = first_row(result)
    max_position = row.get("position") if row else None
    return (max_position or 0) + 1


async def create_task(owner_id: str, fields: dict, created_by: str = CreatedBy.VICTOR.value) -> dict:
    """Insert a task at the end of its column and return the stored row."""
    title = (fields.get("title") or "").strip()
    if not title:
        raise BadRequest("title is required")

    column_id = _validate_column(fields.get("column_id") or ColumnId.INBOX.value)
    priority = _validate_priority(fields.get("priority") or Priority.MEDIUM.value)

    row: dict[str, Any] = {
        "user_id": owner_id,
        "title": title,
        "description": fields.get("description"),
        "column_id": column_id,
        "priority": priority,
        "project": fields.get("project"),
        "created_by": CreatedBy(created_by).value,
        "archived": False,
    }
    for key in ("client_id", "product_id", "event_date", "recurrence_rule",
                "recurrence_end_date", "recurrence_count"):
        if fields.get(key) is not None:
            row[key] = fields[key]
    pattern = _validate_pattern(fields.get("recurrence_pattern"))
    if pattern:
        row["recurrence_pattern"] = pattern
    if column_id == ColumnId.DONE.value:
        row["completed_at"] = to_utc_iso(utc_now())

    await _normalize_dates(owner_id, row)
    row["position"] = await next_position(owner_id, column_id)

    async with SupabaseClient() as client:
        try:
            result = client.table(TASKS_TABLE).insert(row).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to create task: {e}")

    task = first_row(result)
    if not task:
        raise SupabaseError("Failed to create task: no data returned")

    logger.info(
        "Task created",
        task_id=task.get("id"),
        owner_id=mask_user_id(owner_id),
        column_id=column_id,
        position=task.get("position"),
        created_by=row["created_by"],
        has_event_date=bool(row.get("event_date"))
    )
    return task


async def get_task(task_id: str, owner_id: str) -> dict:
    """Fetch one task; another owner's task is indistinguishable from a missing one."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TASKS_TABLE)
                .select("*")
                .eq("id", task_id)
                .eq("user_id", owner_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to get task: {e}")

    task = first_row(result)
    if not task:
        raise NotFound("Task not found")
    return task


async def list_tasks(
    owner_id: str,
    column_id: Optional[str] = None,
    include_archived: bool = False,
) -> list[dict]:
    """Tasks for an owner in board order (position, then insertion order)."""
    async with SupabaseClient() as client:
        try:
            query = client.table(TASKS_TABLE).select("*").eq("user_id", owner_id)
            if column_id:
                query = query.eq("column_id", _validate_column(column_id))
            if not include_archived:
                query = query.eq("archived", False)
            result = query.order("position").order("created_at").execute()
        except BadRequest:
            raise
        except Exception as e:
            raise SupabaseError(f"Failed to list tasks: {e}")
    return all_rows(result)


async def list_dated_tasks(owner_id: str) -> list[dict]:
    """Non-archived tasks that have calendar presence."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TASKS_TABLE)
                .select("*")
                .eq("user_id", owner_id)
                .eq("archived", False)
                .not_.is_("event_date", "null")
                .order("event_date")
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to list dated tasks: {e}")
    return all_rows(result)


async def _write(task_id: str, owner_id: str, updates: dict, action: str) -> dict:
    updates["updated_at"] = to_utc_iso(utc_now())
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TASKS_TABLE)
                .update(updates)
                .eq("id", task_id)
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to {action} task: {e}")

    task = first_row(result)
    if not task:
        raise NotFound("Task not found")
    return task


def _completion_fields(to_column: str) -> dict:
    if to_column == ColumnId.DONE.value:
        return {"completed_at": to_utc_iso(utc_now())}
    return {"completed_at": None}


async def move_task(task_id: str, owner_id: str, to_column: str) -> dict:
    """Append a task to the end of another column. Siblings keep their positions."""
    column_id = _validate_column(to_column)
    await get_task(task_id, owner_id)
    updates = {
        "column_id": column_id,
        "position": await next_position(owner_id, column_id),
    }
    updates.update(_completion_fields(column_id))
    task = await _write(task_id, owner_id, updates, "move")
    logger.info("Task moved", task_id=task_id, column_id=column_id, position=task.get("position"))
    return task


async def mark_done(task_id: str, owner_id: str) -> dict:
    return await move_task(task_id, owner_id, ColumnId.DONE.value)


async def update_task(task_id: str, owner_id: str, partial: dict) -> dict:
    """
    Whitelisted partial update.

    A column change without an explicit position appends to the end of the
    destination column, same as move_task.
    """
    updates = {k: v for k, v in partial.items() if k in UPDATABLE_FIELDS}
    if not updates:
        return await get_task(task_id, owner_id)

    if "title" in updates:
        title = (updates["title"] or "").strip()
        if not title:
            raise BadRequest("title must not be empty")
        updates["title"] = title
    if "priority" in updates:
        updates["priority"] = _validate_priority(updates["priority"] or Priority.MEDIUM.value)
    if "recurrence_pattern" in updates:
        updates["recurrence_pattern"] = _validate_pattern(updates["recurrence_pattern"])
    for key in ("event_date", "recurrence_end_date"):
        if key in updates and not updates[key]:
            updates[key] = None
    await _normalize_dates(owner_id, updates)

    if "column_id" in updates:
        updates["column_id"] = _validate_column(updates["column_id"])
        current = await get_task(task_id, owner_id)
        if updates["column_id"] != current.get("column_id"):
            if "position" not in updates:
                updates["position"] = await next_position(owner_id, updates["column_id"])
            updates.update(_completion_fields(updates["column_id"]))

    task = await _write(task_id, owner_id, updates, "update")
    logger.info("Task updated", task_id=task_id, fields=sorted(updates.keys()))
    return task


async def set_sync_status(
    task_id: str,
    owner_id: str,
    status: Optional[SyncStatus],
    event_id: Any = ...,
    error: Optional[str] = None,
    synced_at: Optional[datetime] = None,
) -> dict:
    """
    Record the outcome of a calendar sync attempt.

    ``event_id`` is left untouched unless passed, so an ``error`` keeps the
    previous (possibly stale) event id.
    """
    updates: dict[str, Any] = {
        "google_calendar_sync_status": status.value if status else None,
        "google_calendar_error": error,
    }
    if event_id is not ...:
        updates["google_calendar_event_id"] = event_id
    if status == SyncStatus.SYNCED:
        updates["google_calendar_synced_at"] = to_utc_iso(synced_at or utc_now())
        updates["google_calendar_error"] = None
    elif status is None:
        updates["google_calendar_synced_at"] = None
    return await _write(task_id, owner_id, updates, "record sync status for")


async def delete_task(task_id: str, owner_id: str) -> None:
    """
    Remove the task row (subtasks cascade).

    Calendar events and storage objects are the caller's responsibility.
    """
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TASKS_TABLE)
                .delete()
                .eq("id", task_id)
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to delete task: {e}")

    if not all_rows(result):
        raise NotFound("Task not found")
    logger.info("Task deleted", task_id=task_id, owner_id=mask_user_id(owner_id))


async def archive_completed_tasks(owner_id: str, now: Optional[datetime] = None) -> list[dict]:
    """Archive tasks that have sat in done for longer than the retention window."""
    now = now or utc_now()
    cutoff = to_utc_iso(now - timedelta(days=ARCHIVE_RETENTION_DAYS))

    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TASKS_TABLE)
                .update({"archived": True, "archived_at": to_utc_iso(now)})
                .eq("user_id", owner_id)
                .eq("column_id", ColumnId.DONE.value)
                .eq("archived", False)
                .lt("completed_at", cutoff)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to archive tasks: {e}")

    archived = all_rows(result)
    logger.info("Auto-archive sweep", owner_id=mask_user_id(owner_id), archived_count=len(archived), cutoff=cutoff)
    return archived
