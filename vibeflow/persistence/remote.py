"""Remote persistence gateway: domain CRUD on top of a ``RowStore``.

Only projects, cards and todos have remote tables. Calendar events and the
activity log stay local.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..state.models import (
    DEFAULT_COLOR,
    AppState,
    CardStatus,
    KanbanCard,
    Project,
    TodoItem,
)
from .interface import KANBAN_CARDS, PROJECTS, TODO_ITEMS, RowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CardPosition:
    """One entry of a batched position update. ``status`` is set only if it changed."""

    card_id: str
    position: int
    status: CardStatus | None = None


# -- Row transformers --


def project_to_row(user_id: str, project: Project) -> dict:
    return {
        "id": project.id,
        "user_id": user_id,
        "name": project.name,
        "notes": project.notes,
        "color": project.color or DEFAULT_COLOR,
        "created_at": project.created_at,
    }


def card_to_row(user_id: str, project_id: str, card: KanbanCard, position: int) -> dict:
    return {
        "id": card.id,
        "project_id": project_id,
        "user_id": user_id,
        "title": card.title,
        "description": card.description or None,
        "status": card.status.value,
        "position": position,
        "created_at": card.created_at,
    }


def todo_to_row(user_id: str, project_id: str, todo: TodoItem, position: int) -> dict:
    return {
        "id": todo.id,
        "project_id": project_id,
        "user_id": user_id,
        "text": todo.text,
        "completed": todo.completed,
        "position": position,
    }


def row_to_card(row: dict) -> KanbanCard:
    try:
        status = CardStatus(row.get("status"))
    except ValueError:
        status = CardStatus.TODO
    return KanbanCard(
        id=row["id"],
        title=row.get("title") or "",
        status=status,
        description=row.get("description") or None,
        created_at=row.get("created_at") or 0,
    )


def row_to_todo(row: dict) -> TodoItem:
    return TodoItem(
        id=row["id"],
        text=row.get("text") or "",
        completed=bool(row.get("completed")),
    )


def rows_to_state(
    project_rows: list[dict], card_rows: list[dict], todo_rows: list[dict]
) -> AppState:
    """Join rows by ``project_id`` and order children by ``position``."""
    cards_by_project: dict[str, list[dict]] = {}
    for row in card_rows:
        cards_by_project.setdefault(row.get("project_id"), []).append(row)
    todos_by_project: dict[str, list[dict]] = {}
    for row in todo_rows:
        todos_by_project.setdefault(row.get("project_id"), []).append(row)

    def by_position(row: dict) -> int:
        return row.get("position") or 0

    projects = []
    for row in project_rows:
        project_id = row["id"]
        projects.append(
            Project(
                id=project_id,
                name=row.get("name") or "",
                color=row.get("color") or DEFAULT_COLOR,
                notes=row.get("notes") or "",
                created_at=row.get("created_at") or 0,
                cards=[
                    row_to_card(r)
                    for r in sorted(cards_by_project.get(project_id, []), key=by_position)
                ],
                todos=[
                    row_to_todo(r)
                    for r in sorted(todos_by_project.get(project_id, []), key=by_position)
                ],
            )
        )
    return AppState(
        projects=projects,
        active_project_id=projects[0].id if projects else None,
    )


class RemoteGateway:
    """Domain-level operations against the remote tables.

    Every method raises ``RemoteStoreError`` (from the row store) on failure.
    """

    def __init__(self, rows: RowStore):
        self.rows = rows

    async def fetch_user_data(self, user_id: str) -> AppState:
        project_rows, card_rows, todo_rows = await asyncio.gather(
            self.rows.select(PROJECTS, user_id, order_by="created_at"),
            self.rows.select(KANBAN_CARDS, user_id),
            self.rows.select(TODO_ITEMS, user_id),
        )
        return rows_to_state(project_rows, card_rows, todo_rows)

    # -- Projects --

    async def create_project(self, user_id: str, project: Project) -> None:
        logger.debug("Creating remote project %s", project.id)
        await self.rows.insert(PROJECTS, project_to_row(user_id, project))

    async def update_project(self, project_id: str, **values) -> None:
        await self.rows.update(PROJECTS, project_id, values)

    async def delete_project(self, project_id: str) -> None:
        # Cards and todos go with it through the foreign-key cascade.
        await self.rows.delete(PROJECTS, project_id)

    async def create_project_tree(self, user_id: str, project: Project) -> None:
        """Insert a project followed by its cards and todos, positions by list index."""
        await self.create_project(user_id, project)
        for position, card in enumerate(project.cards):
            await self.create_card(user_id, project.id, card, position)
        for position, todo in enumerate(project.todos):
            await self.create_todo(user_id, project.id, todo, position)

    async def upload_state(self, user_id: str, state: AppState) -> None:
        for project in state.projects:
            await self.create_project_tree(user_id, project)

    # -- Cards --

    async def create_card(
        self, user_id: str, project_id: str, card: KanbanCard, position: int
    ) -> None:
        await self.rows.insert(KANBAN_CARDS, card_to_row(user_id, project_id, card, position))

    async def update_card(self, card_id: str, **values) -> None:
        await self.rows.update(KANBAN_CARDS, card_id, values)

    async def delete_card(self, card_id: str) -> None:
        await self.rows.delete(KANBAN_CARDS, card_id)

    async def update_card_positions(self, updates: list[CardPosition]) -> None:
        """Write all position(+status) updates concurrently."""

        def _values(update: CardPosition) -> dict:
            values: dict = {"position": update.position}
            if update.status is not None:
                values["status"] = update.status.value
            return values

        results = await asyncio.gather(
            *(self.rows.update(KANBAN_CARDS, u.card_id, _values(u)) for u in updates),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    # -- Todos --

    async def create_todo(
        self, user_id: str, project_id: str, todo: TodoItem, position: int
    ) -> None:
        await self.rows.insert(TODO_ITEMS, todo_to_row(user_id, project_id, todo, position))

    async def update_todo(self, todo_id: str, **values) -> None:
        await self.rows.update(TODO_ITEMS, todo_id, values)

    async def delete_todo(self, todo_id: str) -> None:
        await self.rows.delete(TODO_ITEMS, todo_id)

    async def update_todo_positions(self, positions: dict[str, int]) -> None:
        """Write all todo positions concurrently."""
        results = await asyncio.gather(
            *(self.rows.update(TODO_ITEMS, todo_id, {"position": p}) for todo_id, p in positions.items()),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
