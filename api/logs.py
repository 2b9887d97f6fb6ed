"""Activity log feed."""

from cyra_kanban.services import activity_log
from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    owner_id = await get_session_user_id(request)

    if request.method == "GET":
        try:
            limit = int(request.query.get("limit", activity_log.DEFAULT_LIMIT))
        except ValueError:
            raise BadRequest("limit must be an integer")
        return json_response(200, {"logs": await activity_log.list_logs(owner_id, limit)})

    if request.method == "POST":
        body = request.json()
        log = await activity_log.add_log(owner_id, body.get("action"), body.get("details"), body.get("task_id"))
        return json_response(201, {"log": log})

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
