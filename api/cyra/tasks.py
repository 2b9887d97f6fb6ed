"""Flat task-creation endpoint for external automations."""

from pydantic import ValidationError

from cyra_kanban.models.actions import FlatTaskPayload
from cyra_kanban.services.auth import require_automation, resolve_owner_id
from cyra_kanban.services.automation import create_flat_task
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _create(payload: FlatTaskPayload) -> dict:
    owner_id = await resolve_owner_id()
    task = await create_flat_task(owner_id, payload)
    return json_response(201, {"ok": True, "id": task["id"]})


def route(request: Request) -> dict:
    if request.method != "POST":
        return method_not_allowed()
    require_automation(request, include_tasks_key=True)

    try:
        payload = FlatTaskPayload.model_validate(request.json())
    except ValidationError as e:
        raise BadRequest("Invalid task payload") from e
    if not (payload.title or "").strip():
        raise BadRequest("title is required")

    return run_async(_create(payload))


class handler(VercelHandler):
    route = staticmethod(route)
