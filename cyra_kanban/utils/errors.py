"""Error handling utilities."""

from typing import Optional


class KanbanError(Exception):
    """Base exception for the kanban backend."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(KanbanError):
    """Missing or invalid bearer token or session."""
    status_code = 401
    default_message = "Unauthorized"


class BadRequest(KanbanError):
    """Malformed JSON, missing required field or unknown action."""
    status_code = 400
    default_message = "Bad request"


class MissingDueDate(BadRequest):
    """Calendar sync attempted on a task with no event_date."""
    default_message = "Task has no due date"


class NotFound(KanbanError):
    """Resource absent or owned by a different user."""
    status_code = 404
    default_message = "Not found"


class UserNotFound(NotFound):
    """Acting owner could not be resolved."""
    default_message = "User not found"


class UpstreamFailure(KanbanError):
    """Google Calendar API or token refresh failure."""
    status_code = 502
    default_message = "Upstream service failure"


class TokenRefreshFailed(UpstreamFailure):
    """Google rejected the stored refresh token."""
    default_message = "Token refresh failed"


class InternalError(KanbanError):
    """Unexpected database or storage failure."""
    pass


class SupabaseError(InternalError):
    """Supabase operation error."""
    pass
