"""Append-only activity log."""

from typing import Optional

from cyra_kanban.services.supabase_client import SupabaseClient, all_rows, first_row
from cyra_kanban.utils.errors import BadRequest, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

LOGS_TABLE = "logs"
DEFAULT_LIMIT = 50
MAX_LIMIT = 500


async def add_log(owner_id: str, action: str, details: Optional[str] = None, task_id: Optional[str] = None) -> dict:
    if not action or not action.strip():
        raise BadRequest("action is required")
    row = {
        "user_id": owner_id,
        "action": action.strip(),
        "details": details,
        "task_id": task_id,
    }
    async with SupabaseClient() as client:
        try:
            result = client.table(LOGS_TABLE).insert(row).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to write log entry: {e}")
    return first_row(result) or row


async def list_logs(owner_id: str, limit: int = DEFAULT_LIMIT) -> list[dict]:
    """Most recent entries first."""
    limit = max(1, min(int(limit), MAX_LIMIT))
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(LOGS_TABLE)
                .select("*")
                .eq("user_id", owner_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to list log entries: {e}")
    return all_rows(result)
