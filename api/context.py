"""Business context Cyra plans around; readable and writable with either auth mode."""

from cyra_kanban.services import business_context
from cyra_kanban.services.auth import authenticate
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    if request.method not in ("GET", "PUT", "PATCH"):
        return method_not_allowed()
    owner_id, _ = await authenticate(request)

    if request.method == "GET":
        context = await business_context.get_context(owner_id)
    elif request.method == "PUT":
        context = await business_context.replace_context(owner_id, request.json())
    else:
        body = request.json()
        context = await business_context.add_to_context(
            owner_id,
            add_goal=body.get("addGoal"),
            add_initiative=body.get("addInitiative"),
            add_project=body.get("addProject"),
        )
    return json_response(200, business_context.public_context(context))


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
