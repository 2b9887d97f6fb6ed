"""Attachment model - file stored in Supabase Storage, referenced by a task."""

from typing import Optional
from pydantic import BaseModel, Field

ATTACHMENT_BUCKET = "task-attachments"
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
SIGNED_URL_TTL_SECONDS = 3600


class Attachment(BaseModel):
    id: str = Field(..., description="Attachment ID")
    task_id: str = Field(..., description="Parent task ID")
    user_id: str = Field(..., description="Owner ID")
    file_name: str = Field(..., description="Original file name")
    file_path: str = Field(..., description="Object path inside the storage bucket")
    file_size: int = Field(..., ge=0, le=MAX_ATTACHMENT_BYTES)
    mime_type: Optional[str] = None
    url: Optional[str] = Field(None, description="Signed URL, generated at read time")
    created_at: Optional[str] = None
