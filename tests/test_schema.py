"""Tests for the versioned state parser and serializer."""

import json

import pytest

from vibeflow.exceptions import SchemaError
from vibeflow.state.actions import AddCard, AddEvent, AddProject, AddTodo
from vibeflow.state.models import DEFAULT_COLOR, DEFAULT_PROJECT_NAME, AppState, CardStatus, Priority
from vibeflow.state.reducer import reduce
from vibeflow.state.schema import (
    SCHEMA_VERSION,
    dump_state,
    parse_activity,
    parse_card,
    parse_legacy_state,
    parse_state,
)


@pytest.fixture
def state():
    state = AppState()
    for action in (
        AddProject(name="Launch", project_id="p1", timestamp=1),
        AddCard(title="Design", card_id="c1", priority=Priority.HIGH, due_date="2026-03-01", timestamp=2),
        AddTodo("Call printer", todo_id="t1", timestamp=3),
        AddEvent(title="Demo", date="2026-03-02", time="09:00", end_time="10:00", event_id="e1", timestamp=4),
    ):
        state = reduce(state, action)
    return state


class TestDumpState:
    def test_uses_current_version_and_camel_case(self, state):
        data = dump_state(state)
        assert data["version"] == SCHEMA_VERSION
        assert data["activeProjectId"] == "p1"
        project = data["projects"][0]
        assert project["cards"][0]["dueDate"] == "2026-03-01"
        assert project["events"][0]["endTime"] == "10:00"
        assert "createdAt" in project

    def test_omits_unset_optional_fields(self, state):
        card = dump_state(state)["projects"][0]["cards"][0]
        assert "description" not in card

    def test_survives_json_round_trip(self, state):
        assert parse_state(json.loads(json.dumps(dump_state(state)))) == state


class TestParseState:
    def test_rejects_non_object(self):
        with pytest.raises(SchemaError):
            parse_state(["not", "a", "state"])

    def test_rejects_unknown_version(self):
        with pytest.raises(SchemaError, match="version"):
            parse_state({"version": 99, "projects": []})

    def test_rejects_missing_projects(self):
        with pytest.raises(SchemaError, match="projects"):
            parse_state({"version": 2})

    def test_backfills_missing_fields(self):
        state = parse_state({"projects": [{"id": "p1", "cards": [{"id": "c1"}]}]})
        project = state.projects[0]
        assert project.name == DEFAULT_PROJECT_NAME
        assert project.color == DEFAULT_COLOR
        assert project.events == []
        assert project.activities == []
        assert project.cards[0].title == "Untitled"
        assert project.cards[0].status is CardStatus.TODO

    def test_repairs_dangling_active_id(self):
        state = parse_state({"projects": [{"id": "p1"}], "activeProjectId": "gone"})
        assert state.active_project_id == "p1"

    def test_skips_garbage_entries_and_duplicates(self):
        state = parse_state({
            "projects": [
                {"id": "p1", "cards": [{"id": "c1"}, "junk", {"id": "c1", "title": "dup"}]},
                42,
            ]
        })
        assert len(state.projects) == 1
        assert [c.id for c in state.projects[0].cards] == ["c1"]
        assert state.projects[0].cards[0].title == "Untitled"

    def test_bad_enum_values_fall_back(self):
        card = parse_card({"id": "c1", "title": "x", "status": "doing", "priority": "urgent"})
        assert card.status is CardStatus.TODO
        assert card.priority is None

    @pytest.mark.parametrize("raw", ["Infinity", "-Infinity", "NaN", "1e400"])
    def test_non_finite_numbers_fall_back(self, raw):
        payload = json.loads(
            '{"version": 2, "activeProjectId": "p", "projects": '
            '[{"id": "p", "name": "P", "createdAt": ' + raw + ','
            ' "cards": [{"id": "c", "title": "C", "createdAt": ' + raw + '}]}]}'
        )
        state = parse_state(payload)
        project = state.projects[0]
        assert isinstance(project.created_at, int)
        assert isinstance(project.cards[0].created_at, int)

    def test_unknown_activity_type_is_dropped(self):
        assert parse_activity({"id": "a1", "type": "card_exploded"}) is None


class TestParseLegacyState:
    def test_wraps_into_single_project(self):
        state = parse_legacy_state(
            {
                "cards": [{"id": "c1", "title": "Old card", "status": "complete"}],
                "todos": [{"id": "t1", "text": "Old todo", "completed": True}],
                "notes": "old notes",
            },
            project_id="legacy",
            timestamp=42,
        )
        assert state.active_project_id == "legacy"
        project = state.projects[0]
        assert project.name == DEFAULT_PROJECT_NAME
        assert project.created_at == 42
        assert project.cards[0].status is CardStatus.COMPLETE
        assert project.todos[0].completed is True
        assert project.notes == "old notes"

    def test_rejects_unrelated_payload(self):
        with pytest.raises(SchemaError):
            parse_legacy_state({"something": "else"})
