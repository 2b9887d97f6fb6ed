"""Subtask checklist items; rows cascade with their parent task."""

from cyra_kanban.models.subtask import Subtask
from cyra_kanban.services.supabase_client import SupabaseClient, all_rows, first_row
from cyra_kanban.services.task_store import get_task
from cyra_kanban.utils.errors import BadRequest, NotFound, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger
from cyra_kanban.utils.timezones import to_utc_iso, utc_now

logger = get_structured_logger(__name__)

SUBTASKS_TABLE = "subtasks"
UPDATABLE_FIELDS = ("title", "completed", "position")


def _subtask(row: dict) -> dict:
    return Subtask.model_validate(row).model_dump(mode="json")


async def list_subtasks(owner_id: str, task_id: str) -> list[dict]:
    await get_task(task_id, owner_id)
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(SUBTASKS_TABLE)
                .select("*")
                .eq("task_id", task_id)
                .eq("user_id", owner_id)
                .order("position")
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to list subtasks: {e}")
    return [_subtask(row) for row in all_rows(result)]


async def create_subtask(owner_id: str, task_id: str, title: str) -> dict:
    """Append a subtask to the end of the task's checklist."""
    title = (title or "").strip()
    if not title:
        raise BadRequest("title is required")
    existing = await list_subtasks(owner_id, task_id)
    position = max((s.get("position") or 0 for s in existing), default=0) + 1

    async with SupabaseClient() as client:
        try:
            result = client.table(SUBTASKS_TABLE).insert({
                "task_id": task_id,
                "user_id": owner_id,
                "title": title,
                "completed": False,
                "position": position,
            }).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to create subtask: {e}")

    subtask = first_row(result)
    if not subtask:
        raise SupabaseError("Failed to create subtask: no data returned")
    return _subtask(subtask)


async def update_subtask(owner_id: str, subtask_id: str, partial: dict) -> dict:
    updates = {k: v for k, v in partial.items() if k in UPDATABLE_FIELDS}
    if "title" in updates:
        updates["title"] = (updates["title"] or "").strip()
        if not updates["title"]:
            raise BadRequest("title must not be empty")
    if "completed" in updates:
        updates["completed"] = bool(updates["completed"])
    if not updates:
        raise BadRequest("No updatable fields provided")
    updates["updated_at"] = to_utc_iso(utc_now())

    async with SupabaseClient() as client:
        try:
            result = (
                client.table(SUBTASKS_TABLE)
                .update(updates)
                .eq("id", subtask_id)
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to update subtask: {e}")

    subtask = first_row(result)
    if not subtask:
        raise NotFound("Subtask not found")
    return _subtask(subtask)


async def delete_subtask(owner_id: str, subtask_id: str) -> None:
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(SUBTASKS_TABLE)
                .delete()
                .eq("id", subtask_id)
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to delete subtask: {e}")

    if not all_rows(result):
        raise NotFound("Subtask not found")
    logger.info("Subtask deleted", subtask_id=subtask_id)
