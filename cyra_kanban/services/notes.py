"""Notes passed between Victor and Cyra."""

from cyra_kanban.models.activity import Note
from cyra_kanban.models.task import CreatedBy
from cyra_kanban.services.supabase_client import SupabaseClient, all_rows, first_row
from cyra_kanban.utils.errors import BadRequest, NotFound, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

NOTES_TABLE = "notes"


def _note(row: dict) -> dict:
    return Note.model_validate(row).model_dump(mode="json")


async def add_note(owner_id: str, content: str, from_user: str = CreatedBy.VICTOR.value) -> dict:
    content = (content or "").strip()
    if not content:
        raise BadRequest("content is required")
    try:
        sender = CreatedBy(from_user).value
    except ValueError:
        raise BadRequest(f"Invalid sender: {from_user}")

    row = {"user_id": owner_id, "content": content, "from_user": sender, "read": False}
    async with SupabaseClient() as client:
        try:
            result = client.table(NOTES_TABLE).insert(row).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to add note: {e}")

    note = first_row(result)
    if not note:
        raise SupabaseError("Failed to add note: no data returned")
    logger.info("Note added", note_id=note.get("id"), from_user=sender)
    return _note(note)


async def list_notes(owner_id: str, unread_only: bool = False) -> list[dict]:
    """Newest first."""
    async with SupabaseClient() as client:
        try:
            query = client.table(NOTES_TABLE).select("*").eq("user_id", owner_id)
            if unread_only:
                query = query.eq("read", False)
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to list notes: {e}")
    return [_note(row) for row in all_rows(result)]


async def set_note_read(owner_id: str, note_id: str, read: bool = True) -> dict:
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(NOTES_TABLE)
                .update({"read": bool(read)})
                .eq("id", note_id)
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to update note: {e}")

    note = first_row(result)
    if not note:
        raise NotFound("Note not found")
    return _note(note)
