"""Actions accepted by the reducer.

Project-scoped actions carry an explicit ``project_id``; ``None`` targets the
active project. Ids and timestamps for anything an action creates are fixed
when the action is built, so replaying an action yields the same state apart
from the ids of the activity-log entries the reducer adds.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import AppState, CardStatus, Priority, new_id, now_ms


@dataclass(frozen=True)
class Action:
    """Base class for reducer actions."""


@dataclass(frozen=True)
class Hydrate(Action):
    state: AppState


# -- Projects --


@dataclass(frozen=True)
class AddProject(Action):
    name: str
    project_id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class UpdateProject(Action):
    project_id: str
    name: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class DeleteProject(Action):
    project_id: str


@dataclass(frozen=True)
class SetActiveProject(Action):
    project_id: str


@dataclass(frozen=True)
class SetNotes(Action):
    notes: str
    project_id: str | None = None


# -- Cards --


@dataclass(frozen=True)
class AddCard(Action):
    title: str
    status: CardStatus = CardStatus.TODO
    description: str | None = None
    priority: Priority | None = None
    due_date: str | None = None
    project_id: str | None = None
    card_id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class UpdateCard(Action):
    """Update card fields. Only keys present in ``updates`` change."""

    card_id: str
    updates: dict = field(default_factory=dict)
    project_id: str | None = None


@dataclass(frozen=True)
class DeleteCard(Action):
    card_id: str
    project_id: str | None = None
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class MoveCard(Action):
    card_id: str
    status: CardStatus
    new_index: int | None = None
    project_id: str | None = None
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class ReorderCards(Action):
    status: CardStatus
    card_ids: tuple[str, ...]
    project_id: str | None = None


# -- Todos --


@dataclass(frozen=True)
class AddTodo(Action):
    text: str
    project_id: str | None = None
    todo_id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class ToggleTodo(Action):
    todo_id: str
    project_id: str | None = None
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class UpdateTodo(Action):
    todo_id: str
    text: str
    project_id: str | None = None


@dataclass(frozen=True)
class DeleteTodo(Action):
    todo_id: str
    project_id: str | None = None


@dataclass(frozen=True)
class PromoteTodo(Action):
    todo_id: str
    project_id: str | None = None
    card_id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)


# -- Calendar events --


@dataclass(frozen=True)
class AddEvent(Action):
    title: str
    date: str
    color: str | None = None
    description: str | None = None
    time: str | None = None
    end_time: str | None = None
    project_id: str | None = None
    event_id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class UpdateEvent(Action):
    event_id: str
    updates: dict = field(default_factory=dict)
    project_id: str | None = None


@dataclass(frozen=True)
class DeleteEvent(Action):
    event_id: str
    project_id: str | None = None
