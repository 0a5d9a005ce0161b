"""Versioned parser/serializer for persisted application state.

Two on-disk formats exist:

* version 2 (current): ``{"version": 2, "projects": [...], "activeProjectId": ...}``
* version 1 (legacy, single project): ``{"cards": [...], "todos": [...], "notes": ""}``

Parsing never trusts the payload shape. Every field is checked and backfilled
with a default; entries that are not objects are skipped; duplicate ids keep
the first occurrence. Only a payload that is not recognisable at all raises
``SchemaError``.
"""

from __future__ import annotations

import math
from typing import Any

from ..exceptions import SchemaError
from .models import (
    DEFAULT_COLOR,
    DEFAULT_PROJECT_NAME,
    ActivityEntry,
    ActivityType,
    AppState,
    CalendarEvent,
    CardStatus,
    KanbanCard,
    Priority,
    Project,
    TodoItem,
    new_id,
    now_ms,
)

SCHEMA_VERSION = 2


def _str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return default


def _dicts(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _unique(items: list) -> list:
    seen: set[str] = set()
    result = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return result


# -- Parsing --


def parse_card(data: dict) -> KanbanCard:
    try:
        status = CardStatus(data.get("status"))
    except ValueError:
        status = CardStatus.TODO
    try:
        priority = Priority(data["priority"]) if data.get("priority") else None
    except ValueError:
        priority = None
    return KanbanCard(
        id=_str(data.get("id")) or new_id(),
        title=_str(data.get("title")) or "Untitled",
        status=status,
        description=_opt_str(data.get("description")),
        priority=priority,
        due_date=_opt_str(data.get("dueDate")),
        created_at=_int(data.get("createdAt"), now_ms()),
    )


def parse_todo(data: dict) -> TodoItem:
    return TodoItem(
        id=_str(data.get("id")) or new_id(),
        text=_str(data.get("text")) or "Untitled",
        completed=bool(data.get("completed", False)),
    )


def parse_event(data: dict) -> CalendarEvent:
    return CalendarEvent(
        id=_str(data.get("id")) or new_id(),
        title=_str(data.get("title")) or "Untitled",
        date=_str(data.get("date")),
        color=_str(data.get("color")) or DEFAULT_COLOR,
        description=_opt_str(data.get("description")),
        time=_opt_str(data.get("time")),
        end_time=_opt_str(data.get("endTime")),
        created_at=_int(data.get("createdAt"), now_ms()),
    )


def parse_activity(data: dict) -> ActivityEntry | None:
    try:
        activity_type = ActivityType(data.get("type"))
    except ValueError:
        return None
    return ActivityEntry(
        id=_str(data.get("id")) or new_id(),
        type=activity_type,
        title=_str(data.get("title")),
        timestamp=_int(data.get("timestamp"), 0),
        detail=_opt_str(data.get("detail")),
    )


def parse_project(data: dict) -> Project:
    activities = [parse_activity(a) for a in _dicts(data.get("activities"))]
    return Project(
        id=_str(data.get("id")) or new_id(),
        name=_str(data.get("name")) or DEFAULT_PROJECT_NAME,
        color=_str(data.get("color")) or DEFAULT_COLOR,
        cards=_unique([parse_card(c) for c in _dicts(data.get("cards"))]),
        todos=_unique([parse_todo(t) for t in _dicts(data.get("todos"))]),
        notes=_str(data.get("notes")),
        events=_unique([parse_event(e) for e in _dicts(data.get("events"))]),
        activities=_unique([a for a in activities if a is not None]),
        created_at=_int(data.get("createdAt"), now_ms()),
    )


def parse_state(data: Any) -> AppState:
    """Parse a current-format payload into an ``AppState``."""
    if not isinstance(data, dict):
        raise SchemaError(f"Expected an object, got {type(data).__name__}")
    version = data.get("version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise SchemaError(f"Unsupported state version: {version!r}")
    if not isinstance(data.get("projects"), list):
        raise SchemaError("State payload has no 'projects' list")

    projects = _unique([parse_project(p) for p in _dicts(data["projects"])])
    active = data.get("activeProjectId")
    if not isinstance(active, str) or not any(p.id == active for p in projects):
        active = projects[0].id if projects else None
    return AppState(projects=projects, active_project_id=active)


def parse_legacy_state(data: Any, project_id: str | None = None, timestamp: int | None = None) -> AppState:
    """Wrap a version 1 single-project payload into a one-project ``AppState``."""
    if not isinstance(data, dict):
        raise SchemaError(f"Expected an object, got {type(data).__name__}")
    if not any(key in data for key in ("cards", "todos", "notes")):
        raise SchemaError("Legacy payload has none of 'cards', 'todos', 'notes'")

    project = Project(
        id=project_id or new_id(),
        name=DEFAULT_PROJECT_NAME,
        color=DEFAULT_COLOR,
        cards=_unique([parse_card(c) for c in _dicts(data.get("cards"))]),
        todos=_unique([parse_todo(t) for t in _dicts(data.get("todos"))]),
        notes=_str(data.get("notes")),
        created_at=timestamp if timestamp is not None else now_ms(),
    )
    return AppState(projects=[project], active_project_id=project.id)


# -- Serialization --


def _prune(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def dump_card(card: KanbanCard) -> dict:
    return _prune({
        "id": card.id,
        "title": card.title,
        "description": card.description,
        "status": card.status.value,
        "priority": card.priority.value if card.priority else None,
        "dueDate": card.due_date,
        "createdAt": card.created_at,
    })


def dump_todo(todo: TodoItem) -> dict:
    return {"id": todo.id, "text": todo.text, "completed": todo.completed}


def dump_event(event: CalendarEvent) -> dict:
    return _prune({
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "date": event.date,
        "time": event.time,
        "endTime": event.end_time,
        "color": event.color,
        "createdAt": event.created_at,
    })


def dump_activity(entry: ActivityEntry) -> dict:
    return _prune({
        "id": entry.id,
        "type": entry.type.value,
        "title": entry.title,
        "detail": entry.detail,
        "timestamp": entry.timestamp,
    })


def dump_project(project: Project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "color": project.color,
        "cards": [dump_card(c) for c in project.cards],
        "todos": [dump_todo(t) for t in project.todos],
        "notes": project.notes,
        "events": [dump_event(e) for e in project.events],
        "activities": [dump_activity(a) for a in project.activities],
        "createdAt": project.created_at,
    }


def dump_state(state: AppState) -> dict:
    return {
        "version": SCHEMA_VERSION,
        "projects": [dump_project(p) for p in state.projects],
        "activeProjectId": state.active_project_id,
    }
