"""Health check endpoint."""

import os

from cyra_kanban.utils.http import Request, VercelHandler, json_response, method_not_allowed


def route(request: Request) -> dict:
    if request.method not in ("GET", "POST"):
        return method_not_allowed()
    return json_response(200, {
        "status": "ok",
        "service": "cyra-kanban-backend",
        "supabase_configured": bool(
            (os.environ.get("SUPABASE_URL") or os.environ.get("NEXT_PUBLIC_SUPABASE_URL"))
            and os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        ),
        "google_configured": bool(os.environ.get("GOOGLE_CLIENT_ID") and os.environ.get("GOOGLE_CLIENT_SECRET")),
    })


class handler(VercelHandler):
    """Health check handler for Vercel serverless function."""
    route = staticmethod(route)
