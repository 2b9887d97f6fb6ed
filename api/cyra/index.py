"""Cyra automation endpoint - tagged actions behind the automation token."""

from cyra_kanban.models.actions import ACTION_NAMES
from cyra_kanban.services.auth import require_automation, resolve_owner_id
from cyra_kanban.services.automation import handle_action, parse_action
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _post(request: Request) -> dict:
    owner_id = await resolve_owner_id()
    action = parse_action(request.json())
    return json_response(200, await handle_action(owner_id, action))


def route(request: Request) -> dict:
    if request.method not in ("GET", "POST"):
        return method_not_allowed()

    # Nothing is read or written before the token checks out
    require_automation(request)

    if request.method == "GET":
        return json_response(200, {
            "status": "ok",
            "message": "Cyra API is running",
            "actions": ACTION_NAMES,
        })
    return run_async(_post(request))


class handler(VercelHandler):
    route = staticmethod(route)
