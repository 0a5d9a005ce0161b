"""Diff-sync: push the delta between two state snapshots to the remote store.

The diff is set-based on ids at each level (projects, then cards and todos
within each surviving project). It is not a CRDT: concurrent edits from two
devices resolve as "last full write wins" at the remote.

Each remote call runs independently. A failed call is logged and recorded in
the ``SyncResult``, and the remaining calls still run, so one bad row cannot
block unrelated writes. There is no rollback; a failure leaves the remote
behind the local state until an overlapping change is synced again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable

from ..persistence.remote import CardPosition, RemoteGateway
from ..state.models import AppState, KanbanCard, TodoItem

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    operations: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class DiffSyncEngine:
    """Computes and issues the remote writes for one state transition."""

    def __init__(self, remote: RemoteGateway):
        self.remote = remote

    async def _run(self, result: SyncResult, label: str, call: Awaitable[None]) -> bool:
        result.operations += 1
        try:
            await call
        except Exception as e:
            logger.error("Sync operation failed (%s): %s", label, e, exc_info=True)
            result.errors.append(f"{label}: {e}")
            return False
        logger.debug("Synced: %s", label)
        return True

    async def sync(self, user_id: str, previous: AppState, current: AppState) -> SyncResult:
        """Bring the remote in line with ``current``, given it matched ``previous``."""
        result = SyncResult()
        previous_by_id = {p.id: p for p in previous.projects}
        current_ids = {p.id for p in current.projects}

        for project in current.projects:
            if project.id not in previous_by_id:
                await self._run(
                    result,
                    f"create project {project.id}",
                    self.remote.create_project_tree(user_id, project),
                )

        for project in previous.projects:
            if project.id not in current_ids:
                await self._run(
                    result,
                    f"delete project {project.id}",
                    self.remote.delete_project(project.id),
                )

        for project in current.projects:
            before = previous_by_id.get(project.id)
            if before is None:
                continue
            if (
                before.name != project.name
                or before.color != project.color
                or before.notes != project.notes
            ):
                await self._run(
                    result,
                    f"update project {project.id}",
                    self.remote.update_project(
                        project.id,
                        name=project.name,
                        color=project.color,
                        notes=project.notes,
                    ),
                )
            await self.sync_cards(user_id, project.id, before.cards, project.cards, result)
            await self.sync_todos(user_id, project.id, before.todos, project.todos, result)

        if not result.ok:
            logger.warning(
                "Sync for %s finished with %d failed operation(s) of %d",
                user_id,
                len(result.errors),
                result.operations,
            )
        return result

    async def sync_cards(
        self,
        user_id: str,
        project_id: str,
        previous: list[KanbanCard],
        current: list[KanbanCard],
        result: SyncResult | None = None,
    ) -> SyncResult:
        result = result if result is not None else SyncResult()
        previous_index = {card.id: i for i, card in enumerate(previous)}
        current_ids = {card.id for card in current}

        for position, card in enumerate(current):
            if card.id not in previous_index:
                await self._run(
                    result,
                    f"create card {card.id}",
                    self.remote.create_card(user_id, project_id, card, position),
                )

        for card in previous:
            if card.id not in current_ids:
                await self._run(
                    result, f"delete card {card.id}", self.remote.delete_card(card.id)
                )

        positions: list[CardPosition] = []
        for position, card in enumerate(current):
            index = previous_index.get(card.id)
            if index is None:
                continue
            before = previous[index]
            if before.title != card.title or (before.description or None) != (
                card.description or None
            ):
                await self._run(
                    result,
                    f"update card {card.id}",
                    self.remote.update_card(
                        card.id, title=card.title, description=card.description or None
                    ),
                )
            status_changed = before.status is not card.status
            if status_changed or index != position:
                positions.append(
                    CardPosition(
                        card_id=card.id,
                        position=position,
                        status=card.status if status_changed else None,
                    )
                )

        if positions:
            await self._run(
                result,
                f"reposition {len(positions)} card(s) in {project_id}",
                self.remote.update_card_positions(positions),
            )
        return result

    async def sync_todos(
        self,
        user_id: str,
        project_id: str,
        previous: list[TodoItem],
        current: list[TodoItem],
        result: SyncResult | None = None,
    ) -> SyncResult:
        result = result if result is not None else SyncResult()
        previous_index = {todo.id: i for i, todo in enumerate(previous)}
        current_ids = {todo.id for todo in current}

        for position, todo in enumerate(current):
            if todo.id not in previous_index:
                await self._run(
                    result,
                    f"create todo {todo.id}",
                    self.remote.create_todo(user_id, project_id, todo, position),
                )

        for todo in previous:
            if todo.id not in current_ids:
                await self._run(
                    result, f"delete todo {todo.id}", self.remote.delete_todo(todo.id)
                )

        positions: dict[str, int] = {}
        for position, todo in enumerate(current):
            index = previous_index.get(todo.id)
            if index is None:
                continue
            before = previous[index]
            values = {}
            if before.completed != todo.completed:
                values["completed"] = todo.completed
            if before.text != todo.text:
                values["text"] = todo.text
            if values:
                await self._run(
                    result,
                    f"update todo {todo.id}",
                    self.remote.update_todo(todo.id, **values),
                )
            if index != position:
                positions[todo.id] = position

        if positions:
            await self._run(
                result,
                f"reposition {len(positions)} todo(s) in {project_id}",
                self.remote.update_todo_positions(positions),
            )
        return result
