"""Reverse sync - pull Google-side edits of task events back onto tasks."""

from cyra_kanban.services.auth import authenticate
from cyra_kanban.services.calendar_sync import pull_calendar_changes
from cyra_kanban.utils.errors import TokenRefreshFailed
from cyra_kanban.utils.http import Request, VercelHandler, error_response, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    if request.method != "POST":
        return method_not_allowed()
    owner_id, _ = await authenticate(request)

    body = request.json()
    try:
        result = await pull_calendar_changes(owner_id, body.get("timeMin"), body.get("timeMax"))
    except TokenRefreshFailed:
        return error_response(401, "Token refresh failed")
    return json_response(200, dict(result, success=True))


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
