"""Auto-archive sweep (can be called via Vercel cron with the automation token)."""

from cyra_kanban.services.auth import authenticate
from cyra_kanban.services.task_store import ARCHIVE_RETENTION_DAYS, archive_completed_tasks
from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed, run_async


async def _route(request: Request) -> dict:
    if request.method not in ("GET", "POST"):
        return method_not_allowed()
    owner_id, _ = await authenticate(request)
    archived = await archive_completed_tasks(owner_id)
    return json_response(200, {
        "ok": True,
        "archived": len(archived),
        "task_ids": [t.get("id") for t in archived],
        "retention_days": ARCHIVE_RETENTION_DAYS,
    })


def route(request: Request) -> dict:
    return run_async(_route(request))


class handler(VercelHandler):
    route = staticmethod(route)
