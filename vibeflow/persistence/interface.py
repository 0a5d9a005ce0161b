"""Storage and change-feed protocols."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

PROFILES = "profiles"
PROJECTS = "projects"
KANBAN_CARDS = "kanban_cards"
TODO_ITEMS = "todo_items"

SYNCED_TABLES: tuple[str, ...] = (PROJECTS, KANBAN_CARDS, TODO_ITEMS)


class KeyValueStorage(Protocol):
    """Durable client-side string storage (the browser's localStorage equivalent)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class RowStore(Protocol):
    """Row-oriented CRUD over the remote relational tables.

    Implementations raise ``RemoteStoreError`` on failure. Deleting a
    ``projects`` row removes its ``kanban_cards`` and ``todo_items`` rows.
    """

    async def select(
        self, table: str, user_id: str, order_by: str | None = None
    ) -> list[dict]: ...

    async def insert(self, table: str, row: dict) -> None: ...

    async def update(self, table: str, row_id: str, values: dict) -> None: ...

    async def delete(self, table: str, row_id: str) -> None: ...


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change pushed by the realtime channel."""

    table: str
    event_type: str  # "INSERT" | "UPDATE" | "DELETE"
    user_id: str
    row_id: str | None = None


class ChangeFeed(Protocol):
    """Push source of row-level changes filtered to one user."""

    def subscribe(
        self,
        user_id: str,
        tables: tuple[str, ...],
        callback: Callable[[ChangeEvent], None],
    ) -> Callable[[], None]:
        """Register ``callback``; return a function that removes the subscription."""
        ...
