"""Task attachments; accepts the automation token or a browser session."""

import base64
import binascii

from cyra_kanban.services import attachments
from cyra_kanban.services.auth import authenticate
from cyra_kanban.services.recurrence import resolve_task_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async

BASE_PATH = "/api/cyra/attachments"


def read_upload(request: Request) -> tuple[str, str, bytes, str]:
    """
    ``(task_id, file_name, content, content_type)`` from a multipart form or
    a JSON body carrying base64 ``content``.
    """
    content_type = request.header("Content-Type") or ""
    if content_type.startswith("multipart/form-data"):
        form = request.form()
        task_id = form.get("taskId")
        upload = form.get("file")
        if not task_id or not isinstance(upload, dict):
            raise BadRequest("taskId and file required")
        return task_id, upload["filename"], upload["content"], upload["content_type"]

    body = request.json()
    task_id = body.get("taskId")
    file_name = body.get("fileName") or body.get("file_name")
    if not task_id or not file_name or not body.get("content"):
        raise BadRequest("taskId and file required")
    try:
        content = base64.b64decode(body["content"], validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadRequest("content must be base64") from e
    return task_id, file_name, content, body.get("mimeType") or body.get("mime_type")


async def _route(request: Request) -> dict:
    owner_id, _ = await authenticate(request)

    if request.method == "GET":
        task_id = request.query.get("taskId")
        if not task_id:
            raise BadRequest("taskId required")
        items = await attachments.list_attachments(owner_id, resolve_task_id(task_id))
        return json_response(200, {"attachments": items})

    if request.method == "POST":
        task_id, file_name, content, content_type = read_upload(request)
        attachment = await attachments.upload_attachment(
            owner_id, resolve_task_id(task_id), file_name, content, content_type
        )
        return json_response(200, {"attachment": attachment})

    if request.method == "DELETE":
        attachment_id = request.resource_id(BASE_PATH)
        if not attachment_id:
            raise BadRequest("Attachment id required")
        await attachments.delete_attachment(owner_id, attachment_id)
        return json_response(200, {"success": True})

    return method_not_allowed()


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
