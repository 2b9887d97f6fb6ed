"""Subtask CRUD; accepts the automation token or a browser session."""

from cyra_kanban.services import subtasks
from cyra_kanban.services.auth import authenticate
from cyra_kanban.services.recurrence import resolve_task_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async

BASE_PATH = "/api/cyra/subtasks"


async def _route(request: Request) -> dict:
    owner_id, _ = await authenticate(request)

    if request.method == "GET":
        task_id = request.query.get("taskId")
        if not task_id:
            raise BadRequest("taskId required")
        items = await subtasks.list_subtasks(owner_id, resolve_task_id(task_id))
        return json_response(200, {"subtasks": items})

    if request.method == "POST":
        body = request.json()
        if not body.get("taskId") or not body.get("title"):
            raise BadRequest("taskId and title required")
        subtask = await subtasks.create_subtask(owner_id, resolve_task_id(body["taskId"]), body["title"])
        return json_response(200, {"subtask": subtask})

    if request.method == "PATCH":
        body = request.json()
        subtask_id = request.resource_id(BASE_PATH, body)
        if not subtask_id:
            raise BadRequest("Subtask id required")
        subtask = await subtasks.update_subtask(owner_id, subtask_id, body)
        return json_response(200, {"subtask": subtask})

    if request.method == "DELETE":
        subtask_id = request.resource_id(BASE_PATH)
        if not subtask_id:
            raise BadRequest("Subtask id required")
        await subtasks.delete_subtask(owner_id, subtask_id)
        return json_response(200, {"success": True})

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
