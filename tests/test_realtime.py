"""Tests for the realtime merger and its refetch state machine."""

import asyncio

import pytest

from vibeflow.persistence.interface import KANBAN_CARDS, PROJECTS, ChangeEvent
from vibeflow.persistence.remote import RemoteGateway
from vibeflow.state.actions import AddCard, AddEvent, AddProject, Hydrate, SetActiveProject
from vibeflow.state.models import AppState, KanbanCard, Priority
from vibeflow.state.reducer import reduce
from vibeflow.state.store import AppStore
from vibeflow.sync.realtime import RealtimeMerger, RefetchState, merge_remote_state

USER = "user-1"
DEBOUNCE = 0.01


def _two_projects():
    state = AppState()
    for action in (
        AddProject(name="One", project_id="p1", timestamp=1),
        AddProject(name="Two", project_id="p2", timestamp=2),
        AddCard(title="A", card_id="a", project_id="p1", priority=Priority.HIGH, due_date="2026-05-01"),
        AddEvent(title="Demo", date="2026-05-02", project_id="p1", event_id="e1"),
        SetActiveProject("p2"),
    ):
        state = reduce(state, action)
    return state


def _event(table=KANBAN_CARDS):
    return ChangeEvent(table=table, event_type="UPDATE", user_id=USER)


class GatedGateway(RemoteGateway):
    """Gateway whose fetches block until ``gate`` is set."""

    def __init__(self, rows):
        super().__init__(rows)
        self.gate = asyncio.Event()
        self.fetching = asyncio.Event()

    async def fetch_user_data(self, user_id):
        self.fetching.set()
        await self.gate.wait()
        return await super().fetch_user_data(user_id)


@pytest.fixture
def store():
    return AppStore(_two_projects())


@pytest.fixture
def merger(store, remote, feed):
    return RealtimeMerger(store, remote, feed, debounce_seconds=DEBOUNCE)


class TestMergeRemoteState:
    def test_keeps_active_project_when_present(self):
        local = _two_projects()
        fetched = reduce(reduce(AppState(), AddProject(name="One", project_id="p1")), AddProject(name="Two", project_id="p2"))
        assert fetched.active_project_id == "p1"
        assert merge_remote_state(local, fetched).active_project_id == "p2"

    def test_falls_back_when_active_project_gone(self):
        local = _two_projects()
        fetched = reduce(AppState(), AddProject(name="One", project_id="p1"))
        assert merge_remote_state(local, fetched).active_project_id == "p1"

    def test_carries_local_only_fields(self):
        local = _two_projects()
        fetched = reduce(AppState(), AddProject(name="One renamed", project_id="p1"))
        fetched.projects[0].cards.append(KanbanCard(id="a", title="A from remote"))

        merged = merge_remote_state(local, fetched)
        project = merged.find_project("p1")
        assert project.name == "One renamed"
        assert project.cards[0].title == "A from remote"
        assert project.cards[0].priority is Priority.HIGH
        assert project.cards[0].due_date == "2026-05-01"
        assert [e.id for e in project.events] == ["e1"]
        assert project.activities == local.find_project("p1").activities


class TestRealtimeMerger:
    @pytest.mark.asyncio
    async def test_burst_of_notifications_coalesces(self, merger, remote, rows, feed, store):
        await remote.upload_state(USER, store.state)
        rows.clear_calls()
        merger.start(USER)

        for _ in range(5):
            feed.publish(_event())
        assert merger.state is RefetchState.SCHEDULED

        await merger.wait_idle()
        assert merger.refetch_count == 1
        assert len(rows.calls_for("select", PROJECTS)) == 1
        assert merger.state is RefetchState.IDLE

    @pytest.mark.asyncio
    async def test_remote_change_is_hydrated(self, merger, remote, rows, store):
        await remote.upload_state(USER, store.state)
        merger.start(USER)

        # Another device adds a card; the row store publishes the change.
        await remote.create_card(USER, "p1", KanbanCard(id="remote", title="From elsewhere"), 1)
        await merger.wait_idle()

        project = store.state.find_project("p1")
        assert [c.id for c in project.cards] == ["a", "remote"]
        assert store.state.active_project_id == "p2"

    @pytest.mark.asyncio
    async def test_notification_during_fetch_triggers_one_more_pass(self, store, rows, feed):
        gated = GatedGateway(rows)
        await gated.upload_state(USER, store.state)
        merger = RealtimeMerger(store, gated, feed, debounce_seconds=DEBOUNCE)
        merger.start(USER)

        feed.publish(_event())
        await gated.fetching.wait()
        assert merger.state is RefetchState.FETCHING
        feed.publish(_event())
        feed.publish(_event(PROJECTS))

        gated.gate.set()
        await merger.wait_idle()
        assert merger.refetch_count == 2

    @pytest.mark.asyncio
    async def test_failed_refetch_leaves_state_unchanged(self, merger, rows, store):
        rows.fail.add(("select", "*"))
        before = store.state
        merger.start(USER)

        assert await merger.refetch() is False
        assert store.state is before
        assert merger.refetch_count == 0

    @pytest.mark.asyncio
    async def test_stop_cancels_scheduled_refetch(self, merger, feed, rows):
        merger.start(USER)
        rows.clear_calls()
        feed.publish(_event())

        await merger.stop()
        assert merger.state is RefetchState.IDLE
        assert feed.subscriber_count == 0
        await asyncio.sleep(DEBOUNCE * 3)
        assert rows.calls == []
        assert merger.refetch_count == 0

    @pytest.mark.asyncio
    async def test_other_users_are_ignored(self, merger, feed):
        merger.start(USER)
        feed.publish(ChangeEvent(table=KANBAN_CARDS, event_type="INSERT", user_id="someone-else"))
        assert merger.state is RefetchState.IDLE

    @pytest.mark.asyncio
    async def test_notify_before_start_is_ignored(self, merger):
        merger.notify()
        assert merger.state is RefetchState.IDLE

    @pytest.mark.asyncio
    async def test_hydrate_goes_through_store(self, merger, remote, store):
        await remote.upload_state(USER, store.state)
        seen = []
        store.subscribe(seen.append)
        merger.start(USER)

        assert await merger.refetch() is True
        assert isinstance(seen[-1].action, Hydrate)
        assert [e.id for e in store.state.find_project("p1").events] == ["e1"]

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_default_debounce_is_trailing(self, store, remote, rows, feed):
        await remote.upload_state(USER, store.state)
        rows.clear_calls()
        merger = RealtimeMerger(store, remote, feed)
        merger.start(USER)

        # Notifications 50 ms apart keep pushing the refetch back.
        for _ in range(4):
            feed.publish(_event())
            await asyncio.sleep(0.05)
        assert rows.calls_for("select", PROJECTS) == []

        await merger.wait_idle()
        assert merger.refetch_count == 1
        await merger.stop()
