"""Agent status - a single row per owner describing what Cyra is doing."""

from typing import Optional

from cyra_kanban.models.activity import AgentState, AgentStatus
from cyra_kanban.services.supabase_client import SupabaseClient, first_row
from cyra_kanban.utils.errors import BadRequest, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger
from cyra_kanban.utils.timezones import to_utc_iso, utc_now

logger = get_structured_logger(__name__)

STATUS_TABLE = "status"


async def get_status(owner_id: str) -> dict:
    """Stored status, or idle when none has been reported yet."""
    async with SupabaseClient() as client:
        try:
            result = client.table(STATUS_TABLE).select("*").eq("user_id", owner_id).limit(1).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to get status: {e}")
    row = first_row(result) or {"user_id": owner_id}
    return AgentStatus.model_validate(row).model_dump(mode="json")


async def update_status(owner_id: str, state: str, current_task: Optional[str] = None) -> dict:
    try:
        state = AgentState(state).value
    except ValueError:
        raise BadRequest(f"Invalid state: {state}")

    row = {
        "user_id": owner_id,
        "state": state,
        "current_task": current_task,
        "updated_at": to_utc_iso(utc_now()),
    }
    async with SupabaseClient() as client:
        try:
            result = client.table(STATUS_TABLE).upsert(row, on_conflict="user_id").execute()
        except Exception as e:
            raise SupabaseError(f"Failed to update status: {e}")

    logger.info("Agent status updated", state=state)
    return AgentStatus.model_validate(first_row(result) or row).model_dump(mode="json")
