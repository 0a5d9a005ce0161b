"""In-memory storage, row store and change feed. For tests and offline demos."""

from __future__ import annotations

import copy
from typing import Callable

from ..exceptions import RemoteStoreError, StorageError
from ..persistence.interface import (
    KANBAN_CARDS,
    PROFILES,
    PROJECTS,
    TODO_ITEMS,
    ChangeEvent,
)


class InMemoryStorage:
    """KeyValueStorage backed by a dict.

    ``quota`` caps the total stored characters; a write over the cap raises
    ``StorageError`` like a full browser storage would.
    """

    def __init__(self, data: dict[str, str] | None = None, quota: int | None = None):
        self.data: dict[str, str] = dict(data or {})
        self.quota = quota

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v) for k, v in self.data.items() if k != key)
            if used + len(value) > self.quota:
                raise StorageError(key, "quota exceeded")
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class InMemoryChangeFeed:
    """ChangeFeed that delivers published events synchronously to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[str, tuple[str, ...], Callable[[ChangeEvent], None]]] = []

    def subscribe(
        self,
        user_id: str,
        tables: tuple[str, ...],
        callback: Callable[[ChangeEvent], None],
    ) -> Callable[[], None]:
        entry = (user_id, tuple(tables), callback)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> None:
        for user_id, tables, callback in list(self._subscribers):
            if user_id == event.user_id and event.table in tables:
                callback(event)


class InMemoryRowStore:
    """RowStore backed by dicts. Records every call in ``calls``.

    ``fail`` holds ``(operation, table)`` pairs that raise ``RemoteStoreError``;
    use ``"*"`` as the table to fail an operation on every table.
    """

    def __init__(self, feed: InMemoryChangeFeed | None = None) -> None:
        self.tables: dict[str, dict[str, dict]] = {
            PROFILES: {},
            PROJECTS: {},
            KANBAN_CARDS: {},
            TODO_ITEMS: {},
        }
        self.calls: list[tuple[str, str, str | None]] = []
        self.fail: set[tuple[str, str]] = set()
        self.feed = feed

    def _check(self, operation: str, table: str) -> None:
        if table not in self.tables:
            raise RemoteStoreError(operation, f"unknown table {table}")
        if (operation, table) in self.fail or (operation, "*") in self.fail:
            raise RemoteStoreError(operation, f"injected failure on {table}")

    def _publish(self, table: str, event_type: str, row: dict) -> None:
        if self.feed is not None and row.get("user_id"):
            self.feed.publish(
                ChangeEvent(table=table, event_type=event_type, user_id=row["user_id"], row_id=row.get("id"))
            )

    def calls_for(self, operation: str, table: str | None = None) -> list[tuple[str, str, str | None]]:
        return [c for c in self.calls if c[0] == operation and (table is None or c[1] == table)]

    def clear_calls(self) -> None:
        self.calls.clear()

    async def select(self, table: str, user_id: str, order_by: str | None = None) -> list[dict]:
        self.calls.append(("select", table, None))
        self._check("select", table)
        rows = [copy.deepcopy(r) for r in self.tables[table].values() if r.get("user_id") == user_id]
        if order_by is not None:
            rows.sort(key=lambda r: r.get(order_by) or 0)
        return rows

    async def insert(self, table: str, row: dict) -> None:
        self.calls.append(("insert", table, row.get("id")))
        self._check("insert", table)
        if row["id"] in self.tables[table]:
            raise RemoteStoreError("insert", f"duplicate key {row['id']} in {table}")
        if table in (KANBAN_CARDS, TODO_ITEMS) and row.get("project_id") not in self.tables[PROJECTS]:
            raise RemoteStoreError("insert", f"foreign key violation: project {row.get('project_id')}")
        self.tables[table][row["id"]] = dict(row)
        self._publish(table, "INSERT", row)

    async def update(self, table: str, row_id: str, values: dict) -> None:
        self.calls.append(("update", table, row_id))
        self._check("update", table)
        row = self.tables[table].get(row_id)
        if row is None:
            return
        row.update(values)
        self._publish(table, "UPDATE", row)

    async def delete(self, table: str, row_id: str) -> None:
        self.calls.append(("delete", table, row_id))
        self._check("delete", table)
        row = self.tables[table].pop(row_id, None)
        if row is None:
            return
        if table == PROJECTS:
            for child_table in (KANBAN_CARDS, TODO_ITEMS):
                children = self.tables[child_table]
                for child_id in [k for k, r in children.items() if r.get("project_id") == row_id]:
                    del children[child_id]
        self._publish(table, "DELETE", row)
