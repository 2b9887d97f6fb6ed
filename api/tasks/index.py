"""Board task CRUD for the signed-in user."""

from pydantic import ValidationError

from cyra_kanban.models.task import TaskCreate
from cyra_kanban.services import task_store
from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.services.calendar_sync import delete_task_with_side_effects, sync_after_write
from cyra_kanban.services.recurrence import resolve_task_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


def _task_id(request: Request, body: dict) -> str:
    task_id = body.get("id") or body.get("task_id") or request.query.get("id")
    if not task_id:
        raise BadRequest("ID required")
    # Edits of a recurring occurrence apply to the series
    return resolve_task_id(task_id)


def _with_column_alias(body: dict) -> dict:
    fields = dict(body)
    if "column" in fields and "column_id" not in fields:
        fields["column_id"] = fields.pop("column")
    return fields


def _missing_title(error: ValidationError) -> bool:
    return any(e.get("loc") == ("title",) for e in error.errors())


async def _route(request: Request) -> dict:
    owner_id = await get_session_user_id(request)

    if request.method == "GET":
        tasks = await task_store.list_tasks(
            owner_id,
            column_id=request.query.get("column"),
            include_archived=request.query.get("include_archived") == "true",
        )
        return json_response(200, {"tasks": tasks})

    if request.method == "POST":
        try:
            fields = TaskCreate.model_validate(_with_column_alias(request.json()))
        except ValidationError as e:
            raise BadRequest("title is required" if _missing_title(e) else "Invalid task payload") from e
        task = await task_store.create_task(owner_id, fields.model_dump(mode="json", exclude_none=True))
        task = await sync_after_write(owner_id, task)
        return json_response(201, task)

    if request.method in ("PATCH", "PUT"):
        body = request.json()
        task_id = _task_id(request, body)
        task = await task_store.update_task(task_id, owner_id, _with_column_alias(body))
        task = await sync_after_write(owner_id, task)
        return json_response(200, task)

    if request.method == "DELETE":
        body = request.json() if request.body else {}
        await delete_task_with_side_effects(owner_id, _task_id(request, body))
        return json_response(200, {"success": True})

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
