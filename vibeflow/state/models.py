"""Domain models for projects, cards, todos, events and the activity log."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum


class CardStatus(Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ActivityType(Enum):
    CARD_CREATED = "card_created"
    CARD_MOVED = "card_moved"
    CARD_COMPLETED = "card_completed"
    CARD_DELETED = "card_deleted"
    TODO_CREATED = "todo_created"
    TODO_COMPLETED = "todo_completed"
    EVENT_CREATED = "event_created"
    PROJECT_CREATED = "project_created"


# Project and calendar-event colors share one palette.
PROJECT_COLORS: list[str] = [
    "#e5a54b",
    "#5b9bd5",
    "#6bcb77",
    "#d67bff",
    "#ff6b6b",
    "#7bdfff",
    "#ffd93d",
    "#ff8fab",
]
DEFAULT_COLOR = PROJECT_COLORS[0]

COLUMN_TITLES: dict[CardStatus, str] = {
    CardStatus.TODO: "Todo",
    CardStatus.IN_PROGRESS: "In Progress",
    CardStatus.COMPLETE: "Complete",
}

ACTIVITY_LIMIT = 100
DEFAULT_PROJECT_NAME = "My Project"


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class KanbanCard:
    id: str
    title: str
    status: CardStatus = CardStatus.TODO
    description: str | None = None
    priority: Priority | None = None
    due_date: str | None = None
    created_at: int = field(default_factory=now_ms)


@dataclass
class TodoItem:
    id: str
    text: str
    completed: bool = False


@dataclass
class CalendarEvent:
    id: str
    title: str
    date: str
    color: str = DEFAULT_COLOR
    description: str | None = None
    time: str | None = None
    end_time: str | None = None
    created_at: int = field(default_factory=now_ms)


@dataclass
class ActivityEntry:
    id: str
    type: ActivityType
    title: str
    timestamp: int
    detail: str | None = None


@dataclass
class Project:
    id: str
    name: str
    color: str = DEFAULT_COLOR
    cards: list[KanbanCard] = field(default_factory=list)
    todos: list[TodoItem] = field(default_factory=list)
    notes: str = ""
    events: list[CalendarEvent] = field(default_factory=list)
    activities: list[ActivityEntry] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)

    def cards_with_status(self, status: CardStatus) -> list[KanbanCard]:
        return [c for c in self.cards if c.status is status]

    def find_card(self, card_id: str) -> KanbanCard | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def find_todo(self, todo_id: str) -> TodoItem | None:
        for todo in self.todos:
            if todo.id == todo_id:
                return todo
        return None


@dataclass
class AppState:
    projects: list[Project] = field(default_factory=list)
    active_project_id: str | None = None

    def find_project(self, project_id: str | None) -> Project | None:
        if project_id is None:
            return None
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    @property
    def active_project(self) -> Project | None:
        return self.find_project(self.active_project_id)
