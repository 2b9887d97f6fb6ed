"""Request authentication: automation bearer token or a Supabase session."""

import hmac
import os
from typing import Optional

from cyra_kanban.models.task import CreatedBy
from cyra_kanban.services.supabase_client import SupabaseClient, first_row
from cyra_kanban.utils.errors import SupabaseError, Unauthorized, UserNotFound
from cyra_kanban.utils.http import Request
from cyra_kanban.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

PROFILES_TABLE = "profiles"


def get_automation_keys(include_tasks_key: bool = False) -> list[str]:
    """Configured automation tokens (strip to remove trailing newlines from env vars)."""
    names = ["CYRA_API_KEY"]
    if include_tasks_key:
        names.append("CYRA_TASKS_API_KEY")
    return [key for key in (os.environ.get(n, "").strip() for n in names) if key]


def verify_automation_token(token: Optional[str], include_tasks_key: bool = False) -> bool:
    """Constant-time comparison against every configured key."""
    if not token:
        return False
    matched = False
    for key in get_automation_keys(include_tasks_key):
        if hmac.compare_digest(token.encode("utf-8"), key.encode("utf-8")):
            matched = True
    return matched


def require_automation(request: Request, include_tasks_key: bool = False) -> None:
    if not verify_automation_token(request.bearer_token(), include_tasks_key):
        logger.warning("Rejected automation request", path=request.path)
        raise Unauthorized()


async def resolve_owner_id() -> str:
    """
    The single owner automation requests act on.

    ``VICTOR_USER_ID`` wins; otherwise the profile matching ``VICTOR_EMAIL``,
    otherwise the first profile.
    """
    user_id = os.environ.get("VICTOR_USER_ID", "").strip()
    if user_id:
        return user_id

    email = os.environ.get("VICTOR_EMAIL", "").strip()
    async with SupabaseClient() as client:
        try:
            row = None
            if email:
                row = first_row(
                    client.table(PROFILES_TABLE).select("id").eq("email", email).limit(1).execute()
                )
            if not row:
                row = first_row(client.table(PROFILES_TABLE).select("id").limit(1).execute())
        except Exception as e:
            raise SupabaseError(f"Failed to resolve owner: {e}")

    if not row or not row.get("id"):
        raise UserNotFound()
    logger.debug("Resolved automation owner", owner_id=mask_user_id(row["id"]))
    return row["id"]


async def get_session_user_id(request: Request) -> str:
    """Verify a Supabase access token and return its user id."""
    token = request.bearer_token()
    if not token:
        raise Unauthorized()

    async with SupabaseClient() as client:
        try:
            response = client.auth.get_user(token)
        except Exception as e:
            logger.warning("Session verification failed", error=str(e))
            raise Unauthorized() from e

    user = getattr(response, "user", None) if response else None
    if not user or not getattr(user, "id", None):
        raise Unauthorized()
    return user.id


async def authenticate(request: Request, include_tasks_key: bool = False) -> tuple[str, str]:
    """
    Accept either auth mode.

    Returns ``(owner_id, actor)`` where actor is ``cyra`` for the automation
    token and ``victor`` for a browser session.
    """
    if verify_automation_token(request.bearer_token(), include_tasks_key):
        return await resolve_owner_id(), CreatedBy.CYRA.value
    return await get_session_user_id(request), CreatedBy.VICTOR.value
