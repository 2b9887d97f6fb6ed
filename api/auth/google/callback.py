"""Google OAuth callback - exchange the code, store tokens, redirect back to the app."""

from datetime import timezone

from cyra_kanban.services.google_calendar import (
    exchange_code,
    find_primary_calendar_id,
    get_app_url,
    get_calendar_client,
)
from cyra_kanban.services.oauth_state import verify_state
from cyra_kanban.services.user_settings import store_google_tokens
from cyra_kanban.utils.errors import BadRequest, KanbanError
from cyra_kanban.utils.http import Request, VercelHandler, method_not_allowed, redirect, run_async
from cyra_kanban.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)


def _failure(reason: str) -> dict:
    return redirect(f"{get_app_url()}/settings?error={reason}")


async def _callback(request: Request) -> dict:
    if request.query.get("error"):
        logger.warning("Google OAuth error", error=request.query["error"])
        return _failure("google_auth_failed")

    code = request.query.get("code")
    if not code:
        return _failure("no_code")
    state = request.query.get("state")
    if not state:
        return _failure("no_state")

    try:
        payload = verify_state(state)
    except BadRequest:
        return _failure("invalid_state")

    try:
        credentials = exchange_code(code)
    except KanbanError:
        return _failure("token_exchange_failed")
    if not credentials.token:
        return _failure("no_access_token")
    if not credentials.refresh_token:
        logger.info("No refresh token returned; keeping any stored one", owner_id=mask_user_id(payload["user_id"]))

    try:
        calendar = get_calendar_client(credentials.token, credentials.refresh_token)
        calendar_id = find_primary_calendar_id(calendar)
    except KanbanError as e:
        logger.warning("Could not read calendar list; using primary", error=e.message)
        calendar_id = "primary"

    # google-auth reports expiry as naive UTC
    expiry = credentials.expiry
    if expiry is not None and expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)

    try:
        await store_google_tokens(
            payload["user_id"],
            credentials.token,
            credentials.refresh_token,
            expiry,
            calendar_id,
        )
    except KanbanError:
        return _failure("storage_failed")

    target = payload["redirect"]
    separator = "&" if "?" in target else "?"
    return redirect(f"{get_app_url()}{target}{separator}success=connected")


def route(request: Request) -> dict:
    if request.method != "GET":
        return method_not_allowed()
    try:
        return run_async(_callback(request))
    except Exception as e:
        logger.error("Google callback error", exc_info=True, error=str(e))
        return _failure("callback_failed")


class handler(VercelHandler):
    route = staticmethod(route)
