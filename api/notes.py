"""Notes between Victor and Cyra."""

from cyra_kanban.services import notes
from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    owner_id = await get_session_user_id(request)

    if request.method == "GET":
        items = await notes.list_notes(owner_id, unread_only=request.query.get("unread") == "true")
        return json_response(200, {"notes": items})

    if request.method == "POST":
        body = request.json()
        note = await notes.add_note(owner_id, body.get("content"), body.get("from_user") or "victor")
        return json_response(201, {"note": note})

    if request.method == "PATCH":
        body = request.json()
        note_id = body.get("id")
        if not note_id:
            raise BadRequest("ID required")
        note = await notes.set_note_read(owner_id, note_id, body.get("read", True))
        return json_response(200, {"note": note})

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
