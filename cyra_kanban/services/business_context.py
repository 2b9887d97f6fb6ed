"""
Business context store.

Goals, initiatives and projects live in a single ``business_context`` row per
owner. PUT-style replacement swaps whole lists (a missing or null key keeps
the stored list); PATCH-style additions append one item at a time.
"""

import uuid
from typing import Optional

from pydantic import ValidationError

from cyra_kanban.models.business_context import BusinessContext, Project
from cyra_kanban.services.supabase_client import SupabaseClient, first_row
from cyra_kanban.utils.errors import BadRequest, SupabaseError
from cyra_kanban.utils.logging import get_structured_logger
from cyra_kanban.utils.timezones import to_utc_iso, utc_now

logger = get_structured_logger(__name__)

CONTEXT_TABLE = "business_context"
LIST_FIELDS = ("goals", "initiatives", "projects")


def new_project_id() -> str:
    return f"proj-{uuid.uuid4().hex[:12]}"


def _validate(data: dict) -> BusinessContext:
    try:
        return BusinessContext.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise BadRequest(f"Invalid context: {field} {first.get('msg', 'is invalid')}".strip())


def public_context(context: BusinessContext) -> dict:
    """Shape returned to callers (``updatedAt`` as the board client reads it)."""
    data = context.model_dump(mode="json")
    data["updatedAt"] = data.pop("updated_at")
    return data


async def get_context(owner_id: str) -> BusinessContext:
    """Stored context, or an empty one when nothing has been saved yet."""
    async with SupabaseClient() as client:
        try:
            result = client.table(CONTEXT_TABLE).select("*").eq("user_id", owner_id).limit(1).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to get business context: {e}")
    row = first_row(result)
    if not row:
        return BusinessContext()
    return _validate({k: row.get(k) or [] for k in LIST_FIELDS} | {"updated_at": row.get("updated_at")})


async def _save(owner_id: str, context: BusinessContext) -> BusinessContext:
    context.updated_at = to_utc_iso(utc_now())
    row = dict(context.model_dump(mode="json"), user_id=owner_id)
    async with SupabaseClient() as client:
        try:
            client.table(CONTEXT_TABLE).upsert(row, on_conflict="user_id").execute()
        except Exception as e:
            raise SupabaseError(f"Failed to save business context: {e}")
    return context


def _with_project_ids(projects) -> list:
    if not isinstance(projects, list):
        return projects
    return [
        dict(project, id=project.get("id") or new_project_id()) if isinstance(project, dict) else project
        for project in projects
    ]


async def replace_context(owner_id: str, body: dict) -> BusinessContext:
    """Replace each list present in ``body``; absent or null lists are kept."""
    current = await get_context(owner_id)
    data = current.model_dump(mode="json")
    for field in LIST_FIELDS:
        if body.get(field) is not None:
            data[field] = body[field]
    data["projects"] = _with_project_ids(data["projects"])

    context = await _save(owner_id, _validate(data))
    logger.info(
        "Business context replaced",
        goals=len(context.goals),
        initiatives=len(context.initiatives),
        projects=len(context.projects)
    )
    return context


async def add_to_context(
    owner_id: str,
    add_goal: Optional[str] = None,
    add_initiative: Optional[str] = None,
    add_project: Optional[dict] = None,
) -> BusinessContext:
    context = await get_context(owner_id)

    if add_goal:
        context.goals.append(str(add_goal).strip())
    if add_initiative:
        context.initiatives.append(str(add_initiative).strip())
    if add_project:
        if not isinstance(add_project, dict):
            raise BadRequest("addProject must be an object")
        try:
            project = Project.model_validate(dict(add_project, id=new_project_id()))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field = ".".join(str(p) for p in first.get("loc", ())) or "addProject"
            raise BadRequest(f"Invalid project: {field} {first.get('msg', 'is invalid')}".strip())
        context.projects.append(project)

    return await _save(owner_id, context)
