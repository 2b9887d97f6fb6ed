"""Dated tasks for the calendar view, recurring tasks expanded over a window."""

from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.services.recurrence import default_window, expand_recurring_tasks
from cyra_kanban.services.task_store import list_dated_tasks
from cyra_kanban.services.user_settings import get_user_timezone
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async
from cyra_kanban.utils.timezones import parse_instant, to_utc_iso


async def _route(request: Request) -> dict:
    if request.method != "GET":
        return method_not_allowed()
    owner_id = await get_session_user_id(request)

    start, end = default_window()
    if request.query.get("start"):
        start = parse_instant(request.query["start"])
    if request.query.get("end"):
        end = parse_instant(request.query["end"])
    if end <= start:
        raise BadRequest("end must be after start")

    tz_name = await get_user_timezone(owner_id)
    tasks = expand_recurring_tasks(await list_dated_tasks(owner_id), start, end, tz_name)
    return json_response(200, {
        "tasks": tasks,
        "start": to_utc_iso(start),
        "end": to_utc_iso(end),
    })


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
