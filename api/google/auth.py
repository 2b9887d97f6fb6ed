"""Start the Google OAuth consent flow for the signed-in user."""

from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.services.google_calendar import get_auth_url
from cyra_kanban.services.oauth_state import sign_state
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    if request.method != "GET":
        return method_not_allowed()
    owner_id = await get_session_user_id(request)
    state = sign_state(owner_id, request.query.get("redirect"))
    return json_response(200, {"url": get_auth_url(state)})


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
