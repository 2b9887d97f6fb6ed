"""Manual per-task calendar sync: push a task or remove its event."""

from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.services.calendar_sync import is_connected, sync_task, unsync_task
from cyra_kanban.services.recurrence import resolve_task_id
from cyra_kanban.services.task_store import get_task
from cyra_kanban.services.user_settings import get_settings
from cyra_kanban.utils.errors import BadRequest, TokenRefreshFailed, UpstreamFailure
from cyra_kanban.utils.http import Request, VercelHandler, error_response, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    if request.method != "POST":
        return method_not_allowed()
    owner_id = await get_session_user_id(request)

    body = request.json()
    task_id = body.get("taskId")
    action = body.get("action") or "sync"
    if not task_id:
        raise BadRequest("Task ID required")
    if action not in ("sync", "delete"):
        raise BadRequest("Unknown action")

    if not is_connected(await get_settings(owner_id)):
        raise BadRequest("Google Calendar not connected")

    task = await get_task(resolve_task_id(task_id), owner_id)

    if action == "delete":
        await unsync_task(owner_id, task["id"])
        return json_response(200, {"success": True, "action": "deleted"})

    try:
        synced = await sync_task(owner_id, task["id"])
    except TokenRefreshFailed:
        return error_response(401, "Token refresh failed")
    except UpstreamFailure as e:
        return error_response(500, "Calendar sync failed", details=e.message)

    return json_response(200, {
        "success": True,
        "eventId": synced.get("google_calendar_event_id"),
        "action": "updated" if task.get("google_calendar_event_id") else "created",
        "task": synced,
    })


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
