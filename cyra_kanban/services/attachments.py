"""Task attachments - files in Supabase Storage plus a metadata row per file."""

import os
import re
from typing import Optional

from cyra_kanban.models.attachment import (
    ATTACHMENT_BUCKET,
    MAX_ATTACHMENT_BYTES,
    SIGNED_URL_TTL_SECONDS,
    Attachment,
)
from cyra_kanban.services.supabase_client import SupabaseClient, all_rows, first_row
from cyra_kanban.services.task_store import get_task
from cyra_kanban.utils.errors import BadRequest, NotFound, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger, mask_user_id
from cyra_kanban.utils.timezones import utc_now

logger = get_structured_logger(__name__)

ATTACHMENTS_TABLE = "task_attachments"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _attachment(row: dict) -> dict:
    return Attachment.model_validate(row).model_dump(mode="json")


def sanitize_file_name(name: str) -> str:
    """Storage-safe file name: basename only, unsafe characters replaced."""
    base = os.path.basename((name or "").replace("\\", "/"))
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned[:200] or "file"


def object_path(owner_id: str, task_id: str, file_name: str) -> str:
    millis = int(utc_now().timestamp() * 1000)
    return f"{owner_id}/{task_id}/{millis}_{sanitize_file_name(file_name)}"


def _ensure_bucket(client) -> None:
    """Create the private attachments bucket on first use."""
    names = set()
    for bucket in client.storage.list_buckets() or []:
        names.add(bucket.get("name") if isinstance(bucket, dict) else getattr(bucket, "name", None))
    if ATTACHMENT_BUCKET not in names:
        client.storage.create_bucket(
            ATTACHMENT_BUCKET,
            options={"public": False, "file_size_limit": MAX_ATTACHMENT_BYTES},
        )
        logger.info("Created storage bucket", bucket=ATTACHMENT_BUCKET)


def _signed_url(client, path: str) -> Optional[str]:
    try:
        signed = client.storage.from_(ATTACHMENT_BUCKET).create_signed_url(path, SIGNED_URL_TTL_SECONDS)
    except Exception as e:
        logger.warning("Failed to sign attachment URL", path=path, error=str(e))
        return None
    # storage3 has returned both spellings across releases
    return signed.get("signedURL") or signed.get("signedUrl")


async def list_attachments(owner_id: str, task_id: str) -> list[dict]:
    """Attachments of a task, each with a short-lived signed URL."""
    await get_task(task_id, owner_id)
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(ATTACHMENTS_TABLE)
                .select("*")
                .eq("task_id", task_id)
                .eq("user_id", owner_id)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to list attachments: {e}")

        rows = all_rows(result)
        for row in rows:
            row["url"] = _signed_url(client, row["file_path"])
    return [_attachment(row) for row in rows]


async def upload_attachment(
    owner_id: str,
    task_id: str,
    file_name: str,
    content: bytes,
    content_type: Optional[str] = None,
) -> dict:
    """
    Store a file and record its metadata.

    If the metadata insert fails, the uploaded object is removed once so no
    orphan is left behind.
    """
    if not content:
        raise BadRequest("No file provided")
    if len(content) > MAX_ATTACHMENT_BYTES:
        raise BadRequest("File too large (max 10MB)")
    await get_task(task_id, owner_id)

    path = object_path(owner_id, task_id, file_name)
    mime_type = content_type or "application/octet-stream"

    async with SupabaseClient() as client:
        try:
            _ensure_bucket(client)
            client.storage.from_(ATTACHMENT_BUCKET).upload(
                path, content, {"content-type": mime_type, "upsert": "false"}
            )
        except Exception as e:
            raise SupabaseError(f"Failed to upload attachment: {e}")

        try:
            result = client.table(ATTACHMENTS_TABLE).insert({
                "task_id": task_id,
                "user_id": owner_id,
                "file_name": file_name,
                "file_path": path,
                "file_size": len(content),
                "mime_type": mime_type,
            }).execute()
            row = first_row(result)
            if not row:
                raise SupabaseError("no data returned")
        except Exception as e:
            try:
                client.storage.from_(ATTACHMENT_BUCKET).remove([path])
            except Exception as cleanup_error:
                logger.error("Failed to remove orphaned upload", path=path, error=str(cleanup_error))
            raise SupabaseError(f"Failed to save attachment: {e}")

        row["url"] = _signed_url(client, path)

    logger.info(
        "Attachment uploaded",
        task_id=task_id,
        owner_id=mask_user_id(owner_id),
        file_size=len(content),
        mime_type=mime_type
    )
    return _attachment(row)


async def delete_attachment(owner_id: str, attachment_id: str) -> None:
    """Delete the metadata row; a storage failure is logged, not raised."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(ATTACHMENTS_TABLE)
                .select("*")
                .eq("id", attachment_id)
                .eq("user_id", owner_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to get attachment: {e}")

        row = first_row(result)
        if not row:
            raise NotFound("Attachment not found")

        try:
            client.storage.from_(ATTACHMENT_BUCKET).remove([row["file_path"]])
        except Exception as e:
            logger.warning("Failed to remove attachment object", path=row["file_path"], error=str(e))

        try:
            client.table(ATTACHMENTS_TABLE).delete().eq("id", attachment_id).eq("user_id", owner_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to delete attachment: {e}")

    logger.info("Attachment deleted", attachment_id=attachment_id)


async def remove_task_attachments(owner_id: str, task_id: str) -> int:
    """Remove every stored object of a task. Rows go with the task's cascade."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(ATTACHMENTS_TABLE)
                .select("file_path")
                .eq("task_id", task_id)
                .eq("user_id", owner_id)
                .execute()
            )
            paths = [row["file_path"] for row in all_rows(result)]
            if paths:
                client.storage.from_(ATTACHMENT_BUCKET).remove(paths)
        except Exception as e:
            raise SupabaseError(f"Failed to remove task attachments: {e}")
    return len(paths)
