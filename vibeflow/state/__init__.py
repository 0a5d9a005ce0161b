from .actions import (
    Action,
    AddCard,
    AddEvent,
    AddProject,
    AddTodo,
    DeleteCard,
    DeleteEvent,
    DeleteProject,
    DeleteTodo,
    Hydrate,
    MoveCard,
    PromoteTodo,
    ReorderCards,
    SetActiveProject,
    SetNotes,
    ToggleTodo,
    UpdateCard,
    UpdateEvent,
    UpdateProject,
    UpdateTodo,
)
from .models import (
    ActivityEntry,
    ActivityType,
    AppState,
    CalendarEvent,
    CardStatus,
    KanbanCard,
    Priority,
    Project,
    TodoItem,
)
from .reducer import log_activity, reduce
from .store import AppStore, PersistLocal, SyncRemote, Transition

__all__ = [
    "Action",
    "AddCard",
    "AddEvent",
    "AddProject",
    "AddTodo",
    "DeleteCard",
    "DeleteEvent",
    "DeleteProject",
    "DeleteTodo",
    "Hydrate",
    "MoveCard",
    "PromoteTodo",
    "ReorderCards",
    "SetActiveProject",
    "SetNotes",
    "ToggleTodo",
    "UpdateCard",
    "UpdateEvent",
    "UpdateProject",
    "UpdateTodo",
    "ActivityEntry",
    "ActivityType",
    "AppState",
    "CalendarEvent",
    "CardStatus",
    "KanbanCard",
    "Priority",
    "Project",
    "TodoItem",
    "log_activity",
    "reduce",
    "AppStore",
    "PersistLocal",
    "SyncRemote",
    "Transition",
]
