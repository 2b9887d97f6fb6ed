"""Tests for the task store."""

import asyncio
import pytest

from cyra_kanban.models.task import SyncStatus
from cyra_kanban.services import task_store
from cyra_kanban.services.task_store import (
    archive_completed_tasks,
    create_task,
    delete_task,
    get_task,
    list_dated_tasks,
    list_tasks,
    mark_done,
    move_task,
    set_sync_status,
    update_task,
)
from cyra_kanban.utils.errors import BadRequest, NotFound, SupabaseError
from tests.utils.factories import create_subtask_data, create_task_data


class TestCreateTask:
    """Tests for task creation."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_in_empty_column_gets_position_one(self, fake_supabase, owner_id):
        """Scenario A: first task in inbox lands at position 1."""
        task = await create_task(owner_id, {"title": "Call Jane"})

        assert task["position"] == 1
        assert task["column_id"] == "inbox"
        assert task["priority"] == "medium"
        assert task["created_by"] == "victor"
        assert task["user_id"] == owner_id
        assert task["archived"] is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_positions_increase_within_column(self, fake_supabase, owner_id):
        first = await create_task(owner_id, {"title": "One"})
        second = await create_task(owner_id, {"title": "Two"})
        other_column = await create_task(owner_id, {"title": "Three", "column_id": "working"})

        assert second["position"] > first["position"]
        assert other_column["position"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_positions_are_per_owner(self, fake_supabase, owner_id, other_owner_id):
        await create_task(owner_id, {"title": "Mine"})
        theirs = await create_task(other_owner_id, {"title": "Theirs"})
        assert theirs["position"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, fake_supabase, owner_id):
        with pytest.raises(BadRequest, match="title is required"):
            await create_task(owner_id, {"title": "   "})
        assert fake_supabase.rows("tasks") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_column_rejected(self, fake_supabase, owner_id):
        with pytest.raises(BadRequest, match="Invalid column"):
            await create_task(owner_id, {"title": "x", "column_id": "someday"})

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_event_date_normalized_in_owner_zone(self, fake_supabase, owner_id):
        fake_supabase.seed("user_settings", {"user_id": owner_id, "timezone": "America/New_York"})

        task = await create_task(owner_id, {"title": "Standup", "event_date": "2025-01-15T09:00:00"})

        assert task["event_date"] == "2025-01-15T14:00:00Z"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_created_in_done_is_completed(self, fake_supabase, owner_id, freeze_time_fixture):
        task = await create_task(owner_id, {"title": "Already done", "column_id": "done"})
        assert task["completed_at"] == "2025-03-05T12:00:00Z"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_creates_can_share_a_position(self, fake_supabase, owner_id, monkeypatch):
        """The max-position read and the insert are separate round trips."""
        original = task_store.next_position

        async def interleaved(owner, column):
            position = await original(owner, column)
            await asyncio.sleep(0)
            return position

        monkeypatch.setattr(task_store, "next_position", interleaved)

        first, second = await asyncio.gather(
            create_task(owner_id, {"title": "A"}),
            create_task(owner_id, {"title": "B"}),
        )

        assert first["position"] == second["position"] == 1
        ordered = await list_tasks(owner_id)
        assert [t["title"] for t in ordered] == ["A", "B"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_database_error_wrapped(self, fake_supabase, owner_id):
        fake_supabase.failures[("tasks", "insert")] = Exception("connection reset")

        with pytest.raises(SupabaseError, match="Failed to create task"):
            await create_task(owner_id, {"title": "x"})


class TestReadTasks:
    """Tests for owner-scoped reads."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_owner_task_is_not_found(self, fake_supabase, owner_id, other_owner_id):
        task = fake_supabase.seed("tasks", create_task_data(other_owner_id))[0]

        with pytest.raises(NotFound, match="Task not found"):
            await get_task(task["id"], owner_id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_orders_by_position_then_created(self, fake_supabase, owner_id):
        fake_supabase.seed(
            "tasks",
            create_task_data(owner_id, title="late", position=2),
            create_task_data(owner_id, title="tie-first", position=1),
            create_task_data(owner_id, title="tie-second", position=1),
            create_task_data(owner_id, title="archived", position=0, archived=True),
        )

        titles = [t["title"] for t in await list_tasks(owner_id)]
        assert titles == ["tie-first", "tie-second", "late"]

        with_archived = await list_tasks(owner_id, include_archived=True)
        assert with_archived[0]["title"] == "archived"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_filters_by_column(self, fake_supabase, owner_id):
        fake_supabase.seed(
            "tasks",
            create_task_data(owner_id, column_id="inbox"),
            create_task_data(owner_id, column_id="review"),
        )

        tasks = await list_tasks(owner_id, column_id="review")
        assert [t["column_id"] for t in tasks] == ["review"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_dated_tasks_skips_undated(self, fake_supabase, owner_id):
        fake_supabase.seed(
            "tasks",
            create_task_data(owner_id, title="dated", event_date="2025-03-10"),
            create_task_data(owner_id, title="undated"),
        )

        assert [t["title"] for t in await list_dated_tasks(owner_id)] == ["dated"]


class TestMoveAndUpdate:
    """Tests for column moves and partial updates."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_move_appends_and_sets_completion(self, fake_supabase, owner_id, freeze_time_fixture):
        fake_supabase.seed("tasks", create_task_data(owner_id, column_id="done", position=4))
        task = fake_supabase.seed("tasks", create_task_data(owner_id, column_id="inbox"))[0]

        done = await move_task(task["id"], owner_id, "done")
        assert done["column_id"] == "done"
        assert done["position"] == 5
        assert done["completed_at"] == "2025-03-05T12:00:00Z"

        reopened = await move_task(task["id"], owner_id, "working")
        assert reopened["completed_at"] is None
        assert reopened["position"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mark_done(self, fake_supabase, owner_id):
        task = fake_supabase.seed("tasks", create_task_data(owner_id))[0]
        assert (await mark_done(task["id"], owner_id))["column_id"] == "done"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_move_other_owner_not_found(self, fake_supabase, owner_id, other_owner_id):
        task = fake_supabase.seed("tasks", create_task_data(other_owner_id))[0]

        with pytest.raises(NotFound):
            await move_task(task["id"], owner_id, "done")
        assert fake_supabase.rows("tasks")[0]["column_id"] == "inbox"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_ignores_unknown_fields(self, fake_supabase, owner_id, other_owner_id):
        task = fake_supabase.seed("tasks", create_task_data(owner_id, title="Old"))[0]

        updated = await update_task(task["id"], owner_id, {
            "title": "  New  ",
            "user_id": other_owner_id,
            "archived": True,
        })

        assert updated["title"] == "New"
        assert updated["user_id"] == owner_id
        assert updated["archived"] is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_column_appends(self, fake_supabase, owner_id):
        fake_supabase.seed("tasks", create_task_data(owner_id, column_id="review", position=3))
        task = fake_supabase.seed("tasks", create_task_data(owner_id))[0]

        updated = await update_task(task["id"], owner_id, {"column_id": "review"})
        assert updated["position"] == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_clears_event_date(self, fake_supabase, owner_id):
        task = fake_supabase.seed("tasks", create_task_data(owner_id, event_date="2025-03-10"))[0]
        updated = await update_task(task["id"], owner_id, {"event_date": ""})
        assert updated["event_date"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_rejects_bad_priority(self, fake_supabase, owner_id):
        task = fake_supabase.seed("tasks", create_task_data(owner_id))[0]
        with pytest.raises(BadRequest, match="Invalid priority"):
            await update_task(task["id"], owner_id, {"priority": "urgent"})


class TestSyncStatus:
    """Tests for recording calendar sync outcomes."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_synced_clears_error(self, fake_supabase, owner_id):
        task = fake_supabase.seed("tasks", create_task_data(
            owner_id, google_calendar_sync_status="error", google_calendar_error="boom"
        ))[0]

        updated = await set_sync_status(task["id"], owner_id, SyncStatus.SYNCED, event_id="evt_1")

        assert updated["google_calendar_sync_status"] == "synced"
        assert updated["google_calendar_event_id"] == "evt_1"
        assert updated["google_calendar_error"] is None
        assert updated["google_calendar_synced_at"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_keeps_previous_event_id(self, fake_supabase, owner_id):
        task = fake_supabase.seed("tasks", create_task_data(owner_id, google_calendar_event_id="evt_old"))[0]

        updated = await set_sync_status(task["id"], owner_id, SyncStatus.ERROR, error="quota")

        assert updated["google_calendar_event_id"] == "evt_old"
        assert updated["google_calendar_error"] == "quota"


class TestDeleteAndArchive:
    """Tests for deletion and auto-archive."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete_cascades_subtasks(self, fake_supabase, owner_id):
        task = fake_supabase.seed("tasks", create_task_data(owner_id))[0]
        fake_supabase.seed("subtasks", create_subtask_data(owner_id, task["id"]))

        await delete_task(task["id"], owner_id)

        assert fake_supabase.rows("tasks") == []
        assert fake_supabase.rows("subtasks") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete_other_owner_not_found(self, fake_supabase, owner_id, other_owner_id):
        task = fake_supabase.seed("tasks", create_task_data(other_owner_id))[0]

        with pytest.raises(NotFound):
            await delete_task(task["id"], owner_id)
        assert len(fake_supabase.rows("tasks")) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_archive_only_old_done_tasks(self, fake_supabase, owner_id, freeze_time_fixture):
        fake_supabase.seed(
            "tasks",
            create_task_data(owner_id, title="stale", column_id="done", completed_at="2025-02-20T00:00:00Z"),
            create_task_data(owner_id, title="fresh", column_id="done", completed_at="2025-03-03T00:00:00Z"),
            create_task_data(owner_id, title="open", column_id="working"),
        )

        archived = await archive_completed_tasks(owner_id)

        assert [t["title"] for t in archived] == ["stale"]
        assert archived[0]["archived_at"] == "2025-03-05T12:00:00Z"
        remaining = await list_tasks(owner_id)
        assert sorted(t["title"] for t in remaining) == ["fresh", "open"]
