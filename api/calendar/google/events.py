"""Google Calendar events for the calendar view."""

from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.services.calendar_sync import list_external_events
from cyra_kanban.utils.errors import TokenRefreshFailed
from cyra_kanban.utils.http import Request, VercelHandler, error_response, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    if request.method != "GET":
        return method_not_allowed()
    owner_id = await get_session_user_id(request)

    try:
        events = await list_external_events(owner_id, request.query.get("timeMin"), request.query.get("timeMax"))
    except TokenRefreshFailed:
        return error_response(401, "Google Calendar authorization expired", reconnect=True)
    return json_response(200, {"events": events})


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
