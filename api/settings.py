"""User settings - Google Calendar integration switches and timezone."""

from pydantic import ValidationError

from cyra_kanban.models.user_settings import SettingsUpdate
from cyra_kanban.services import user_settings
from cyra_kanban.services.auth import get_session_user_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    owner_id = await get_session_user_id(request)

    if request.method == "GET":
        settings = await user_settings.get_settings(owner_id)
        return json_response(200, {"settings": user_settings.public_settings(settings)})

    if request.method == "PATCH":
        try:
            update = SettingsUpdate.model_validate(request.json())
        except ValidationError as e:
            raise BadRequest("Invalid settings payload") from e
        settings = await user_settings.update_settings(owner_id, update)
        return json_response(200, {"settings": settings})

    if request.method == "DELETE":
        await user_settings.disconnect_google_calendar(owner_id)
        return json_response(200, {"success": True})

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
