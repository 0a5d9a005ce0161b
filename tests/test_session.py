"""Tests for the session coordinator, including two devices sharing one backend."""

import json

import pytest

from vibeflow.adapters.memory import InMemoryStorage
from vibeflow.adapters.polling import PollingChangeFeed
from vibeflow.config import VibeflowConfig
from vibeflow.persistence.interface import KANBAN_CARDS, PROJECTS
from vibeflow.persistence.local import LEGACY_STORAGE_KEY, STORAGE_KEY
from vibeflow.session import VibeflowSession
from vibeflow.state.actions import AddCard, AddTodo, MoveCard, PromoteTodo
from vibeflow.state.models import DEFAULT_PROJECT_NAME, CardStatus
from vibeflow.sync.worker import SyncStatus

USER = "user-1"
DEBOUNCE = 0.01


class TestLocalSession:
    @pytest.mark.asyncio
    async def test_start_creates_default_project(self, storage):
        session = VibeflowSession(storage)
        state = await session.start()
        await session.stop()

        assert [p.name for p in state.projects] == [DEFAULT_PROJECT_NAME]
        assert session.sync_status is SyncStatus.LOCAL
        assert not session.authenticated
        assert STORAGE_KEY in storage.data

    @pytest.mark.asyncio
    async def test_dispatch_persists_after_flush(self, storage):
        session = VibeflowSession(storage)
        await session.start()
        add = AddCard(title="Design")
        session.dispatch(add)
        session.dispatch(MoveCard(add.card_id, CardStatus.COMPLETE))
        await session.flush()
        await session.stop()

        reopened = VibeflowSession(storage)
        state = await reopened.start()
        await reopened.stop()
        assert state.active_project.find_card(add.card_id).status is CardStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_legacy_data_is_migrated(self, storage):
        storage.data[LEGACY_STORAGE_KEY] = json.dumps({"cards": [{"id": "c1", "title": "Old"}]})
        session = VibeflowSession(storage)
        state = await session.start()
        await session.stop()

        assert state.active_project.find_card("c1") is not None
        assert LEGACY_STORAGE_KEY not in storage.data

    @pytest.mark.asyncio
    async def test_refresh_is_unavailable_locally(self, storage):
        session = VibeflowSession(storage)
        await session.start()
        assert await session.refresh() is False
        await session.stop()

    @pytest.mark.asyncio
    async def test_rows_without_user_stay_local(self, storage, rows):
        session = VibeflowSession(storage, rows=rows)
        await session.start()
        session.dispatch(AddCard(title="Design"))
        await session.flush()
        await session.stop()
        assert rows.calls == []


class TestRemoteSession:
    @pytest.mark.asyncio
    async def test_first_sign_in_uploads_local_data(self, storage, rows, feed):
        local_only = VibeflowSession(storage)
        await local_only.start()
        add = AddCard(title="Offline work")
        local_only.dispatch(add)
        await local_only.stop()

        session = VibeflowSession(storage, rows=rows, feed=feed, user_id=USER)
        state = await session.start()
        await session.stop()

        assert session.authenticated
        assert add.card_id in rows.tables[KANBAN_CARDS]
        assert state.active_project.find_card(add.card_id) is not None

    @pytest.mark.asyncio
    async def test_mutations_are_synced(self, storage, rows, feed):
        session = VibeflowSession(storage, rows=rows, feed=feed, user_id=USER, debounce_seconds=DEBOUNCE)
        await session.start()
        add_todo = AddTodo("Ship it")
        session.dispatch(add_todo)
        promote = PromoteTodo(add_todo.todo_id)
        session.dispatch(promote)
        await session.flush()
        await session.stop()

        assert rows.tables[KANBAN_CARDS][promote.card_id]["title"] == "Ship it"
        assert session.sync_status is SyncStatus.SYNCED

    @pytest.mark.asyncio
    async def test_remote_load_failure_falls_back_to_local(self, storage, rows, feed):
        rows.fail.add(("select", "*"))
        session = VibeflowSession(storage, rows=rows, feed=feed, user_id=USER)
        state = await session.start()

        assert session.sync_status is SyncStatus.ERROR
        assert "select" in session.last_error
        assert not session.authenticated
        assert len(state.projects) == 1

        rows.fail.clear()
        rows.clear_calls()
        session.dispatch(AddCard(title="Offline"))
        await session.flush()
        await session.stop()
        assert rows.calls_for("insert") == []

    @pytest.mark.asyncio
    async def test_sync_error_is_reported(self, storage, rows, feed):
        session = VibeflowSession(storage, rows=rows, feed=feed, user_id=USER)
        await session.start()
        statuses = []
        session.on_status(statuses.append)
        rows.fail.add(("insert", KANBAN_CARDS))

        session.dispatch(AddCard(title="Doomed"))
        await session.flush()
        await session.stop()

        assert statuses[-1] is SyncStatus.ERROR
        assert "create card" in session.last_error


class TestTwoDevices:
    @pytest.mark.asyncio
    async def test_change_on_one_device_reaches_the_other(self, rows, feed):
        laptop = VibeflowSession(InMemoryStorage(), rows=rows, feed=feed, user_id=USER, debounce_seconds=DEBOUNCE)
        await laptop.start()
        phone = VibeflowSession(InMemoryStorage(), rows=rows, feed=feed, user_id=USER, debounce_seconds=DEBOUNCE)
        await phone.start()
        assert [p.id for p in phone.state.projects] == [p.id for p in laptop.state.projects]

        add = AddCard(title="From laptop")
        laptop.dispatch(add)
        await laptop.flush()
        await phone.realtime.wait_idle()

        assert phone.state.active_project.find_card(add.card_id).title == "From laptop"
        assert len(rows.tables[PROJECTS]) == 1

        await laptop.stop()
        await phone.stop()


@pytest.mark.asyncio
async def test_from_config_uses_file_storage(tmp_path):
    session = VibeflowSession.from_config(VibeflowConfig(data_dir=tmp_path))
    assert session.remote is None
    await session.start()
    await session.stop()
    assert (tmp_path / f"{STORAGE_KEY}.json").exists()


def _remote_config(tmp_path, **kwargs):
    return VibeflowConfig(
        data_dir=tmp_path,
        supabase_url="https://example.supabase.co",
        supabase_key="anon",
        user_id=USER,
        **kwargs,
    )


def test_from_config_polls_for_remote_changes(tmp_path):
    session = VibeflowSession.from_config(_remote_config(tmp_path, poll_interval_seconds=2.0))
    assert isinstance(session.feed, PollingChangeFeed)
    assert session.feed.interval == 2.0
    assert session.feed.rows is session.remote.rows
    assert session.realtime is not None
    assert session.config.user_id == USER


def test_from_config_without_realtime(tmp_path):
    session = VibeflowSession.from_config(_remote_config(tmp_path), realtime=False)
    assert session.remote is not None
    assert session.realtime is None


def test_from_config_polling_disabled(tmp_path):
    session = VibeflowSession.from_config(_remote_config(tmp_path, poll_interval_seconds=0))
    assert session.realtime is None
