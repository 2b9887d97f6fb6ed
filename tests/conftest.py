"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock
from freezegun import freeze_time

from tests.utils.fake_supabase import FakeSupabase
from tests.utils.helpers import OTHER_OWNER_ID, OWNER_ID, SESSION_TOKEN

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("CYRA_API_KEY", "test-cyra-key")
os.environ.setdefault("CYRA_TASKS_API_KEY", "test-tasks-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OAUTH_STATE_SECRET", "test-state-secret")
os.environ.setdefault("APP_URL", "https://kanban.test")
os.environ.setdefault("DEFAULT_TIMEZONE", "America/Chicago")


@pytest.fixture
def fake_supabase(monkeypatch):
    """In-memory Supabase installed as the client singleton."""
    fake = FakeSupabase()
    fake.auth.sessions[SESSION_TOKEN] = OWNER_ID
    monkeypatch.setattr("cyra_kanban.services.supabase_client._client", fake)
    return fake


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def other_owner_id():
    return OTHER_OWNER_ID


@pytest.fixture
def automation_owner(monkeypatch):
    """Pin the automation owner so no profile lookup is needed."""
    monkeypatch.setenv("VICTOR_USER_ID", OWNER_ID)
    return OWNER_ID


@pytest.fixture
def connected_settings(fake_supabase):
    """A user with Google Calendar connected and a token valid for an hour."""
    return fake_supabase.seed("user_settings", {
        "user_id": OWNER_ID,
        "google_calendar_enabled": True,
        "google_calendar_sync_enabled": True,
        "google_calendar_id": "primary",
        "google_access_token": "ya29.valid-token",
        "google_refresh_token": "1//refresh-token",
        "google_token_expires_at": "2099-01-01T00:00:00Z",
        "timezone": "America/Chicago",
    })[0]


@pytest.fixture
def mock_calendar(monkeypatch):
    """Calendar v3 service mock handed out by the adapter."""
    calendar = MagicMock()
    calendar.events.return_value.insert.return_value.execute.return_value = {"id": "evt_new"}
    calendar.events.return_value.patch.return_value.execute.return_value = {"id": "evt_existing"}
    calendar.events.return_value.delete.return_value.execute.return_value = None
    calendar.events.return_value.list.return_value.execute.return_value = {"items": []}
    calendar.calendarList.return_value.list.return_value.execute.return_value = {
        "items": [{"id": "victor@example.com", "primary": True}]
    }
    monkeypatch.setattr(
        "cyra_kanban.services.google_calendar.get_calendar_client",
        lambda access_token, refresh_token=None: calendar,
    )
    return calendar


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2025-03-05 12:00:00") as frozen_time:
        yield frozen_time
