"""Command line interface for boards, quick tasks, notes and calendar events.

Usage:
  python -m vibeflow show [--project REF]
  python -m vibeflow add-card "Design" [--status todo] [--priority high] [--due 2026-01-31]
  python -m vibeflow move <card> in-progress [--index 0]
  python -m vibeflow add-todo "Call the printer"
  python -m vibeflow promote <todo>
  python -m vibeflow calendar [--login | --redirect URL | --connect TOKEN] [--disconnect]
  python -m vibeflow board

Cards, todos, events and projects are referenced by id, id prefix or title.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

from .config import VibeflowConfig
from .exceptions import VibeflowError
from .state.actions import (
    AddCard,
    AddEvent,
    AddProject,
    AddTodo,
    DeleteCard,
    DeleteEvent,
    DeleteProject,
    DeleteTodo,
    MoveCard,
    PromoteTodo,
    ReorderCards,
    SetActiveProject,
    SetNotes,
    ToggleTodo,
    UpdateCard,
    UpdateProject,
    UpdateTodo,
)
from .state.models import COLUMN_TITLES, AppState, CardStatus, Priority, Project

logger = logging.getLogger(__name__)

STATUS_CHOICES = [s.value for s in CardStatus]
PRIORITY_CHOICES = [p.value for p in Priority]


class CommandError(VibeflowError):
    """A command could not be carried out as requested."""


def resolve(items: list, ref: str, kind: str, label: str = "title"):
    """Find the single item whose id, id prefix or label matches ``ref``."""
    for item in items:
        if item.id == ref:
            return item
    matches = [item for item in items if item.id.startswith(ref)]
    if not matches:
        matches = [item for item in items if getattr(item, label, "").lower() == ref.lower()]
    if not matches:
        raise CommandError(f"No {kind} matches '{ref}'")
    if len(matches) > 1:
        raise CommandError(f"'{ref}' matches {len(matches)} {kind}s; use a longer id")
    return matches[0]


def _project(state: AppState, ref: str | None) -> Project:
    if ref is None:
        if state.active_project is None:
            raise CommandError("No active project")
        return state.active_project
    return resolve(state.projects, ref, "project", label="name")


def _short(item_id: str) -> str:
    return item_id[:8]


def _format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M")


def format_board(project: Project) -> str:
    lines = [f"{project.name}  ({_short(project.id)})", ""]
    for status, title in COLUMN_TITLES.items():
        cards = project.cards_with_status(status)
        lines.append(f"{title} ({len(cards)})")
        for card in cards:
            extra = []
            if card.priority is not None:
                extra.append(card.priority.value)
            if card.due_date:
                extra.append(f"due {card.due_date}")
            suffix = f"  [{', '.join(extra)}]" if extra else ""
            lines.append(f"  {_short(card.id)}  {card.title}{suffix}")
        lines.append("")

    lines.append(f"Quick tasks ({len(project.todos)})")
    for todo in project.todos:
        mark = "x" if todo.completed else " "
        lines.append(f"  [{mark}] {_short(todo.id)}  {todo.text}")
    if project.notes:
        lines.extend(["", "Notes", project.notes])
    return "\n".join(lines)


# -- Commands --


async def _show(session, args) -> None:
    print(format_board(_project(session.state, args.project)))


async def _projects(session, args) -> None:
    state = session.state
    for project in state.projects:
        marker = "*" if project.id == state.active_project_id else " "
        print(
            f"{marker} {_short(project.id)}  {project.name}  "
            f"{len(project.cards)} cards, {len(project.todos)} tasks"
        )


async def _add_project(session, args) -> None:
    action = AddProject(name=args.name)
    session.dispatch(action)
    if session.state.find_project(action.project_id) is None:
        raise CommandError("Project name must not be empty")
    print(f"Created project {_short(action.project_id)}")


async def _use(session, args) -> None:
    project = _project(session.state, args.project)
    session.dispatch(SetActiveProject(project.id))
    print(f"Active project: {project.name}")


async def _rename(session, args) -> None:
    project = _project(session.state, args.project)
    session.dispatch(UpdateProject(project.id, name=args.name, color=args.color))


async def _delete_project(session, args) -> None:
    project = _project(session.state, args.project)
    if len(session.state.projects) == 1:
        raise CommandError("Cannot delete the last project")
    session.dispatch(DeleteProject(project.id))
    print(f"Deleted project {project.name}")


async def _add_card(session, args) -> None:
    project = _project(session.state, args.project)
    action = AddCard(
        title=args.title,
        status=CardStatus(args.status),
        description=args.description,
        priority=Priority(args.priority) if args.priority else None,
        due_date=args.due,
        project_id=project.id,
    )
    session.dispatch(action)
    print(f"Added card {_short(action.card_id)}")


async def _edit_card(session, args) -> None:
    project = _project(session.state, args.project)
    card = resolve(project.cards, args.card, "card")
    updates = {
        "title": args.title,
        "description": args.description,
        "priority": args.priority,
        "due_date": args.due,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        raise CommandError("Nothing to update")
    session.dispatch(UpdateCard(card.id, updates, project_id=project.id))


async def _move(session, args) -> None:
    project = _project(session.state, args.project)
    card = resolve(project.cards, args.card, "card")
    session.dispatch(
        MoveCard(card.id, CardStatus(args.status), new_index=args.index, project_id=project.id)
    )


async def _reorder(session, args) -> None:
    project = _project(session.state, args.project)
    status = CardStatus(args.status)
    column = project.cards_with_status(status)
    ids = tuple(resolve(column, ref, "card").id for ref in args.cards)
    session.dispatch(ReorderCards(status, ids, project_id=project.id))


async def _delete_card(session, args) -> None:
    project = _project(session.state, args.project)
    card = resolve(project.cards, args.card, "card")
    session.dispatch(DeleteCard(card.id, project_id=project.id))


async def _add_todo(session, args) -> None:
    project = _project(session.state, args.project)
    action = AddTodo(args.text, project_id=project.id)
    session.dispatch(action)
    print(f"Added task {_short(action.todo_id)}")


async def _toggle(session, args) -> None:
    project = _project(session.state, args.project)
    todo = resolve(project.todos, args.todo, "task", label="text")
    session.dispatch(ToggleTodo(todo.id, project_id=project.id))


async def _edit_todo(session, args) -> None:
    project = _project(session.state, args.project)
    todo = resolve(project.todos, args.todo, "task", label="text")
    session.dispatch(UpdateTodo(todo.id, args.text, project_id=project.id))


async def _delete_todo(session, args) -> None:
    project = _project(session.state, args.project)
    todo = resolve(project.todos, args.todo, "task", label="text")
    session.dispatch(DeleteTodo(todo.id, project_id=project.id))


async def _promote(session, args) -> None:
    project = _project(session.state, args.project)
    todo = resolve(project.todos, args.todo, "task", label="text")
    action = PromoteTodo(todo.id, project_id=project.id)
    session.dispatch(action)
    print(f"Promoted to card {_short(action.card_id)}")


async def _notes(session, args) -> None:
    project = _project(session.state, args.project)
    if args.text is None:
        print(project.notes)
        return
    session.dispatch(SetNotes(args.text, project_id=project.id))


async def _add_event(session, args) -> None:
    project = _project(session.state, args.project)
    action = AddEvent(
        title=args.title,
        date=args.date,
        color=args.color,
        description=args.description,
        time=args.time,
        end_time=args.end_time,
        project_id=project.id,
    )
    session.dispatch(action)
    print(f"Added event {_short(action.event_id)}")


async def _events(session, args) -> None:
    project = _project(session.state, args.project)
    for event in sorted(project.events, key=lambda e: (e.date, e.time or "")):
        when = event.date
        if event.time:
            when += f" {event.time}"
            if event.end_time:
                when += f"-{event.end_time}"
        print(f"  {_short(event.id)}  {when}  {event.title}")


async def _delete_event(session, args) -> None:
    project = _project(session.state, args.project)
    event = resolve(project.events, args.event, "event")
    session.dispatch(DeleteEvent(event.id, project_id=project.id))


async def _activity(session, args) -> None:
    project = _project(session.state, args.project)
    for entry in project.activities[: args.limit]:
        detail = f" ({entry.detail})" if entry.detail else ""
        print(f"  {_format_time(entry.timestamp)}  {entry.type.value:<15} {entry.title}{detail}")


async def _calendar(session, args) -> None:
    from .adapters.google_calendar import GoogleCalendarClient, events_by_date

    config = session.config
    client = GoogleCalendarClient(
        session.local.storage, client_id=config.google_client_id if config else None
    )
    if args.login:
        print("Open this URL, approve access, then run:")
        print("  vibeflow calendar --redirect <the URL your browser was sent to>")
        print(client.authorization_url())
        return
    if args.redirect:
        if not client.connect_from_redirect(args.redirect):
            print("Google Calendar access was not granted")
            return
    if args.disconnect:
        client.disconnect()
        print("Google Calendar disconnected")
        return
    if args.connect:
        client.connect(args.connect, args.expires_in)
    listing = await client.fetch_events()
    print(listing.calendar_name)
    for date, events in sorted(events_by_date(listing.events).items()):
        print(date)
        for event in events:
            when = "all day" if event.is_all_day else event.start.split("T")[1][:5]
            print(f"  {when:<8} {event.summary}")


# -- Entry point --


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vibeflow", description="Vibeflow project boards")
    parser.add_argument("--data-dir", default=None, help="Directory for local data")
    parser.add_argument("--config", default=None, help="Path to vibeflow.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    def command(name, func, help_text):
        sub = subparsers.add_parser(name, help=help_text)
        sub.set_defaults(func=func)
        sub.add_argument("--project", default=None, help="Project id, prefix or name")
        return sub

    command("show", _show, "Show the board of a project")
    command("projects", _projects, "List projects")

    sub = command("add-project", _add_project, "Create a project")
    sub.add_argument("name")

    sub = subparsers.add_parser("use", help="Switch the active project")
    sub.set_defaults(func=_use)
    sub.add_argument("project", help="Project id, prefix or name")

    sub = command("rename", _rename, "Rename or recolor a project")
    sub.add_argument("name", nargs="?", default=None)
    sub.add_argument("--color", default=None)

    command("delete-project", _delete_project, "Delete a project")

    sub = command("add-card", _add_card, "Add a card")
    sub.add_argument("title")
    sub.add_argument("--status", choices=STATUS_CHOICES, default=CardStatus.TODO.value)
    sub.add_argument("--priority", choices=PRIORITY_CHOICES, default=None)
    sub.add_argument("--due", default=None, help="Due date (YYYY-MM-DD)")
    sub.add_argument("--description", default=None)

    sub = command("edit-card", _edit_card, "Edit a card")
    sub.add_argument("card")
    sub.add_argument("--title", default=None)
    sub.add_argument("--priority", choices=PRIORITY_CHOICES, default=None)
    sub.add_argument("--due", default=None)
    sub.add_argument("--description", default=None)

    sub = command("move", _move, "Move a card to a column")
    sub.add_argument("card")
    sub.add_argument("status", choices=STATUS_CHOICES)
    sub.add_argument("--index", type=int, default=None, help="Position in the target column")

    sub = command("reorder", _reorder, "Reorder the cards of a column")
    sub.add_argument("status", choices=STATUS_CHOICES)
    sub.add_argument("cards", nargs="+")

    sub = command("delete-card", _delete_card, "Delete a card")
    sub.add_argument("card")

    sub = command("add-todo", _add_todo, "Add a quick task")
    sub.add_argument("text")

    sub = command("toggle", _toggle, "Toggle a quick task")
    sub.add_argument("todo")

    sub = command("edit-todo", _edit_todo, "Edit a quick task")
    sub.add_argument("todo")
    sub.add_argument("text")

    sub = command("delete-todo", _delete_todo, "Delete a quick task")
    sub.add_argument("todo")

    sub = command("promote", _promote, "Promote a quick task to a card")
    sub.add_argument("todo")

    sub = command("notes", _notes, "Show or replace project notes")
    sub.add_argument("text", nargs="?", default=None)

    sub = command("add-event", _add_event, "Add a calendar event")
    sub.add_argument("title")
    sub.add_argument("date", help="Date (YYYY-MM-DD)")
    sub.add_argument("--time", default=None, help="Start time (HH:MM)")
    sub.add_argument("--end-time", default=None, help="End time (HH:MM)")
    sub.add_argument("--color", default=None)
    sub.add_argument("--description", default=None)

    command("events", _events, "List calendar events")

    sub = command("delete-event", _delete_event, "Delete a calendar event")
    sub.add_argument("event")

    sub = command("activity", _activity, "Show recent activity")
    sub.add_argument("--limit", type=int, default=20)

    sub = command("calendar", _calendar, "List upcoming Google Calendar events")
    sub.add_argument("--login", action="store_true", help="Print the Google consent URL")
    sub.add_argument("--redirect", default=None, metavar="URL", help="Finish sign-in from the redirect URL")
    sub.add_argument("--connect", default=None, metavar="TOKEN", help="Store an access token")
    sub.add_argument("--expires-in", type=int, default=3600, help="Token lifetime in seconds")
    sub.add_argument("--disconnect", action="store_true", help="Revoke and forget the token")

    sub = subparsers.add_parser("board", help="Open the interactive board")
    sub.set_defaults(func=None)
    return parser


def load_config(args) -> VibeflowConfig:
    config = VibeflowConfig.load(Path(args.config) if args.config else None)
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    return config


async def _run_command(config: VibeflowConfig, args) -> None:
    from .session import VibeflowSession
    from .sync.worker import SyncStatus

    session = VibeflowSession.from_config(config, realtime=False)
    await session.start()
    try:
        await args.func(session, args)
    finally:
        await session.stop()
    if session.sync_status is SyncStatus.ERROR:
        print(f"Warning: changes saved locally but not synced ({session.last_error})", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = load_config(args)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "board":
        from vibeflow_tui.app import run_board

        run_board(config)
        return

    try:
        asyncio.run(_run_command(config, args))
    except VibeflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
