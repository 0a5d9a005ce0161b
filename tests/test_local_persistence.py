"""Tests for the local gateway and first-load migration."""

import json

import pytest

from vibeflow.adapters.memory import InMemoryStorage
from vibeflow.persistence.local import LEGACY_STORAGE_KEY, STORAGE_KEY, LocalGateway
from vibeflow.persistence.migration import default_state, load_local_state
from vibeflow.state.actions import AddCard, AddProject
from vibeflow.state.models import DEFAULT_PROJECT_NAME, AppState
from vibeflow.state.reducer import reduce
from vibeflow.state.schema import dump_state

LEGACY_PAYLOAD = {
    "cards": [{"id": "c1", "title": "Old card", "status": "todo"}],
    "todos": [{"id": "t1", "text": "Old todo", "completed": False}],
    "notes": "legacy notes",
}


def _saved_state():
    state = reduce(AppState(), AddProject(name="Saved", project_id="p1"))
    return reduce(state, AddCard(title="Kept", card_id="c9"))


class TestLocalGateway:
    def test_save_then_load(self, local, storage):
        state = _saved_state()
        assert local.save(state) is True
        assert json.loads(storage.data[STORAGE_KEY])["version"] == 2
        assert local.load() == state

    def test_load_missing_key(self, local):
        assert local.load() is None

    def test_load_discards_corrupt_json(self, storage, local):
        storage.data[STORAGE_KEY] = "{not json"
        assert local.load() is None

    def test_load_discards_unknown_version(self, storage, local):
        storage.data[STORAGE_KEY] = json.dumps({"version": 7, "projects": []})
        assert local.load() is None

    def test_save_failure_is_swallowed(self):
        local = LocalGateway(InMemoryStorage(quota=10))
        assert local.save(_saved_state()) is False

    def test_clear_removes_both_keys(self, storage, local):
        storage.data[STORAGE_KEY] = "{}"
        storage.data[LEGACY_STORAGE_KEY] = "{}"
        local.clear()
        assert storage.data == {}


class TestLoadLocalState:
    def test_prefers_current_key(self, storage, local):
        state = _saved_state()
        storage.data[STORAGE_KEY] = json.dumps(dump_state(state))
        storage.data[LEGACY_STORAGE_KEY] = json.dumps(LEGACY_PAYLOAD)
        assert load_local_state(local) == state

    def test_migrates_legacy_payload(self, storage, local):
        storage.data[LEGACY_STORAGE_KEY] = json.dumps(LEGACY_PAYLOAD)
        state = load_local_state(local)

        assert len(state.projects) == 1
        project = state.active_project
        assert project.name == DEFAULT_PROJECT_NAME
        assert [c.id for c in project.cards] == ["c1"]
        assert project.notes == "legacy notes"
        assert LEGACY_STORAGE_KEY not in storage.data
        assert local.load() == state

    def test_migration_is_idempotent_after_crash(self, storage, local):
        storage.data[LEGACY_STORAGE_KEY] = json.dumps(LEGACY_PAYLOAD)
        first = load_local_state(local)
        # Simulate a crash between writing the new key and removing the old one.
        storage.data[LEGACY_STORAGE_KEY] = json.dumps(LEGACY_PAYLOAD)

        second = load_local_state(local)
        assert second == first
        assert len(second.projects) == 1

    def test_legacy_key_kept_when_save_fails(self):
        storage = InMemoryStorage({LEGACY_STORAGE_KEY: json.dumps(LEGACY_PAYLOAD)}, quota=200)
        state = load_local_state(LocalGateway(storage))
        assert state.projects[0].cards[0].title == "Old card"
        assert LEGACY_STORAGE_KEY in storage.data

    def test_creates_default_project(self, storage, local):
        state = load_local_state(local)
        assert [p.name for p in state.projects] == [DEFAULT_PROJECT_NAME]
        assert state.active_project_id == state.projects[0].id
        assert STORAGE_KEY in storage.data

    def test_empty_current_state_falls_through(self, storage, local):
        storage.data[STORAGE_KEY] = json.dumps({"version": 2, "projects": []})
        state = load_local_state(local)
        assert len(state.projects) == 1

    def test_non_finite_timestamp_does_not_break_startup(self, storage, local):
        storage.data[STORAGE_KEY] = (
            '{"version": 2, "activeProjectId": "p",'
            ' "projects": [{"id": "p", "name": "P", "createdAt": Infinity}]}'
        )
        state = load_local_state(local)
        assert [p.id for p in state.projects] == ["p"]


def test_default_state_has_one_active_project():
    state = default_state("Inbox")
    assert state.active_project.name == "Inbox"
    assert len(state.active_project.activities) == 1
