"""Agent status."""

from cyra_kanban.services import agent_status
from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    owner_id = await get_session_user_id(request)

    if request.method == "GET":
        return json_response(200, await agent_status.get_status(owner_id))

    if request.method == "POST":
        body = request.json()
        status = await agent_status.update_status(owner_id, body.get("state"), body.get("current_task"))
        return json_response(200, status)

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
