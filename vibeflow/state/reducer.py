"""Pure state transitions: ``reduce(state, action) -> state``.

The reducer never raises and never mutates its inputs. Actions it does not
know, or that target a missing project/card/todo, return the state unchanged.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

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
    ACTIVITY_LIMIT,
    COLUMN_TITLES,
    DEFAULT_COLOR,
    PROJECT_COLORS,
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
)

CARD_FIELDS = frozenset({"title", "description", "priority", "due_date", "status"})
EVENT_FIELDS = frozenset({"title", "description", "date", "time", "end_time", "color"})


def log_activity(
    project: Project,
    activity_type: ActivityType,
    title: str,
    timestamp: int,
    detail: str | None = None,
    limit: int = ACTIVITY_LIMIT,
) -> Project:
    """Return ``project`` with a new entry at the head of its activity log."""
    entry = ActivityEntry(
        id=new_id(),
        type=activity_type,
        title=title,
        timestamp=timestamp,
        detail=detail,
    )
    return replace(project, activities=[entry, *project.activities][:limit])


def _target(state: AppState, project_id: str | None) -> Project | None:
    return state.find_project(project_id if project_id is not None else state.active_project_id)


def _swap(state: AppState, project: Project) -> AppState:
    return replace(
        state,
        projects=[project if p.id == project.id else p for p in state.projects],
    )


def _coerce_status(value) -> CardStatus | None:
    if isinstance(value, CardStatus):
        return value
    try:
        return CardStatus(value)
    except ValueError:
        return None


def _coerce_priority(value) -> Priority | None:
    if value is None or isinstance(value, Priority):
        return value
    try:
        return Priority(value)
    except ValueError:
        return None


# -- Projects --


def _hydrate(state: AppState, action: Hydrate) -> AppState:
    incoming = action.state
    projects = [
        replace(p, events=p.events or [], activities=p.activities or [])
        for p in incoming.projects
    ]
    active = incoming.active_project_id
    if active is None or not any(p.id == active for p in projects):
        active = projects[0].id if projects else None
    return AppState(projects=projects, active_project_id=active)


def _add_project(state: AppState, action: AddProject) -> AppState:
    if not action.name.strip() or state.find_project(action.project_id):
        return state
    project = Project(
        id=action.project_id,
        name=action.name,
        color=PROJECT_COLORS[len(state.projects) % len(PROJECT_COLORS)],
        created_at=action.timestamp,
    )
    project = log_activity(project, ActivityType.PROJECT_CREATED, action.name, action.timestamp)
    active = state.active_project_id
    if state.active_project is None:
        active = project.id
    return AppState(projects=[*state.projects, project], active_project_id=active)


def _update_project(state: AppState, action: UpdateProject) -> AppState:
    project = state.find_project(action.project_id)
    if project is None:
        return state
    changes = {}
    if action.name is not None and action.name.strip():
        changes["name"] = action.name
    if action.color is not None:
        changes["color"] = action.color
    if not changes:
        return state
    return _swap(state, replace(project, **changes))


def _delete_project(state: AppState, action: DeleteProject) -> AppState:
    if state.find_project(action.project_id) is None:
        return state
    remaining = [p for p in state.projects if p.id != action.project_id]
    active = state.active_project_id
    if active == action.project_id:
        active = remaining[0].id if remaining else None
    return AppState(projects=remaining, active_project_id=active)


def _set_active_project(state: AppState, action: SetActiveProject) -> AppState:
    if state.find_project(action.project_id) is None:
        return state
    return replace(state, active_project_id=action.project_id)


def _set_notes(state: AppState, action: SetNotes) -> AppState:
    project = _target(state, action.project_id)
    if project is None:
        return state
    return _swap(state, replace(project, notes=action.notes))


# -- Cards --


def _add_card(state: AppState, action: AddCard) -> AppState:
    project = _target(state, action.project_id)
    if project is None or not action.title.strip():
        return state
    card = KanbanCard(
        id=action.card_id,
        title=action.title,
        status=action.status,
        description=action.description,
        priority=action.priority,
        due_date=action.due_date,
        created_at=action.timestamp,
    )
    project = replace(project, cards=[*project.cards, card])
    project = log_activity(project, ActivityType.CARD_CREATED, card.title, action.timestamp)
    return _swap(state, project)


def _update_card(state: AppState, action: UpdateCard) -> AppState:
    project = _target(state, action.project_id)
    card = project.find_card(action.card_id) if project else None
    if card is None:
        return state
    changes = {k: v for k, v in action.updates.items() if k in CARD_FIELDS}
    if "title" in changes and not str(changes["title"] or "").strip():
        del changes["title"]
    if "status" in changes:
        status = _coerce_status(changes["status"])
        if status is None:
            del changes["status"]
        else:
            changes["status"] = status
    if "priority" in changes:
        changes["priority"] = _coerce_priority(changes["priority"])
    if not changes:
        return state
    updated = replace(card, **changes)
    return _swap(
        state,
        replace(project, cards=[updated if c.id == card.id else c for c in project.cards]),
    )


def _delete_card(state: AppState, action: DeleteCard) -> AppState:
    project = _target(state, action.project_id)
    card = project.find_card(action.card_id) if project else None
    if card is None:
        return state
    project = replace(project, cards=[c for c in project.cards if c.id != card.id])
    project = log_activity(project, ActivityType.CARD_DELETED, card.title, action.timestamp)
    return _swap(state, project)


def _move_card(state: AppState, action: MoveCard) -> AppState:
    project = _target(state, action.project_id)
    card = project.find_card(action.card_id) if project else None
    if card is None:
        return state

    moved = replace(card, status=action.status)
    others = [c for c in project.cards if c.id != card.id]
    if action.new_index is not None:
        destination = [c for c in others if c.status is action.status]
        rest = [c for c in others if c.status is not action.status]
        destination.insert(max(0, action.new_index), moved)
        cards = rest + destination
    else:
        cards = others + [moved]
    project = replace(project, cards=cards)

    if card.status is not action.status:
        if action.status is CardStatus.COMPLETE:
            project = log_activity(
                project, ActivityType.CARD_COMPLETED, card.title, action.timestamp
            )
        else:
            project = log_activity(
                project,
                ActivityType.CARD_MOVED,
                card.title,
                action.timestamp,
                detail=f"Moved to {COLUMN_TITLES[action.status]}",
            )
    return _swap(state, project)


def _reorder_cards(state: AppState, action: ReorderCards) -> AppState:
    project = _target(state, action.project_id)
    if project is None:
        return state
    in_column = {c.id: c for c in project.cards if c.status is action.status}
    ordered: list[KanbanCard] = []
    seen: set[str] = set()
    for card_id in action.card_ids:
        if card_id in in_column and card_id not in seen:
            ordered.append(in_column[card_id])
            seen.add(card_id)
    unlisted = [c for c in project.cards if c.id in in_column and c.id not in seen]
    others = [c for c in project.cards if c.status is not action.status]
    cards = ordered + unlisted + others
    if cards == project.cards:
        return state
    return _swap(state, replace(project, cards=cards))


# -- Todos --


def _add_todo(state: AppState, action: AddTodo) -> AppState:
    project = _target(state, action.project_id)
    if project is None or not action.text.strip():
        return state
    todo = TodoItem(id=action.todo_id, text=action.text)
    project = replace(project, todos=[*project.todos, todo])
    project = log_activity(project, ActivityType.TODO_CREATED, todo.text, action.timestamp)
    return _swap(state, project)


def _toggle_todo(state: AppState, action: ToggleTodo) -> AppState:
    project = _target(state, action.project_id)
    todo = project.find_todo(action.todo_id) if project else None
    if todo is None:
        return state
    toggled = replace(todo, completed=not todo.completed)
    project = replace(
        project, todos=[toggled if t.id == todo.id else t for t in project.todos]
    )
    if toggled.completed:
        project = log_activity(
            project, ActivityType.TODO_COMPLETED, todo.text, action.timestamp
        )
    return _swap(state, project)


def _update_todo(state: AppState, action: UpdateTodo) -> AppState:
    project = _target(state, action.project_id)
    todo = project.find_todo(action.todo_id) if project else None
    if todo is None or not action.text.strip():
        return state
    updated = replace(todo, text=action.text)
    return _swap(
        state,
        replace(project, todos=[updated if t.id == todo.id else t for t in project.todos]),
    )


def _delete_todo(state: AppState, action: DeleteTodo) -> AppState:
    project = _target(state, action.project_id)
    if project is None or project.find_todo(action.todo_id) is None:
        return state
    return _swap(
        state,
        replace(project, todos=[t for t in project.todos if t.id != action.todo_id]),
    )


def _promote_todo(state: AppState, action: PromoteTodo) -> AppState:
    project = _target(state, action.project_id)
    todo = project.find_todo(action.todo_id) if project else None
    if todo is None:
        return state
    card = KanbanCard(
        id=action.card_id,
        title=todo.text,
        status=CardStatus.TODO,
        created_at=action.timestamp,
    )
    project = replace(
        project,
        todos=[t for t in project.todos if t.id != todo.id],
        cards=[*project.cards, card],
    )
    project = log_activity(
        project,
        ActivityType.CARD_CREATED,
        card.title,
        action.timestamp,
        detail="Promoted from quick task",
    )
    return _swap(state, project)


# -- Calendar events --


def _add_event(state: AppState, action: AddEvent) -> AppState:
    project = _target(state, action.project_id)
    if project is None or not action.title.strip():
        return state
    color = action.color if action.color in PROJECT_COLORS else DEFAULT_COLOR
    event = CalendarEvent(
        id=action.event_id,
        title=action.title,
        date=action.date,
        color=color,
        description=action.description,
        time=action.time,
        end_time=action.end_time,
        created_at=action.timestamp,
    )
    project = replace(project, events=[*project.events, event])
    project = log_activity(
        project, ActivityType.EVENT_CREATED, event.title, action.timestamp, detail=event.date
    )
    return _swap(state, project)


def _update_event(state: AppState, action: UpdateEvent) -> AppState:
    project = _target(state, action.project_id)
    if project is None:
        return state
    event = next((e for e in project.events if e.id == action.event_id), None)
    if event is None:
        return state
    changes = {k: v for k, v in action.updates.items() if k in EVENT_FIELDS}
    if "color" in changes and changes["color"] not in PROJECT_COLORS:
        del changes["color"]
    if not changes:
        return state
    updated = replace(event, **changes)
    return _swap(
        state,
        replace(project, events=[updated if e.id == event.id else e for e in project.events]),
    )


def _delete_event(state: AppState, action: DeleteEvent) -> AppState:
    project = _target(state, action.project_id)
    if project is None or not any(e.id == action.event_id for e in project.events):
        return state
    return _swap(
        state,
        replace(project, events=[e for e in project.events if e.id != action.event_id]),
    )


HANDLERS: dict[type, Callable[[AppState, Action], AppState]] = {
    Hydrate: _hydrate,
    AddProject: _add_project,
    UpdateProject: _update_project,
    DeleteProject: _delete_project,
    SetActiveProject: _set_active_project,
    SetNotes: _set_notes,
    AddCard: _add_card,
    UpdateCard: _update_card,
    DeleteCard: _delete_card,
    MoveCard: _move_card,
    ReorderCards: _reorder_cards,
    AddTodo: _add_todo,
    ToggleTodo: _toggle_todo,
    UpdateTodo: _update_todo,
    DeleteTodo: _delete_todo,
    PromoteTodo: _promote_todo,
    AddEvent: _add_event,
    UpdateEvent: _update_event,
    DeleteEvent: _delete_event,
}


def reduce(state: AppState, action: Action) -> AppState:
    """Apply ``action`` to ``state`` and return the resulting state."""
    handler = HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)
