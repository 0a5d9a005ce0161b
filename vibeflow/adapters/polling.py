"""Change feed that detects remote changes by polling the row store.

Each poll selects every watched table for the user and compares the rows with
the previous poll, publishing one ``ChangeEvent`` per inserted, updated or
deleted row. The first poll of a table only records its baseline. Works
against any ``RowStore``, so the Supabase REST client doubles as the
realtime source.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable

from ..exceptions import RemoteStoreError
from ..persistence.interface import ChangeEvent, RowStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 5.0

Snapshot = dict[str, str]


def snapshot(rows: list[dict]) -> Snapshot:
    """Map row id to a canonical serialization of the row."""
    return {
        str(row.get("id")): json.dumps(row, sort_keys=True, default=str)
        for row in rows
    }


def diff_snapshots(table: str, user_id: str, before: Snapshot, after: Snapshot) -> list[ChangeEvent]:
    events = []
    for row_id, row in after.items():
        if row_id not in before:
            events.append(ChangeEvent(table, "INSERT", user_id, row_id))
        elif before[row_id] != row:
            events.append(ChangeEvent(table, "UPDATE", user_id, row_id))
    for row_id in before:
        if row_id not in after:
            events.append(ChangeEvent(table, "DELETE", user_id, row_id))
    return events


class PollingChangeFeed:
    """ChangeFeed backed by a polling task per subscription."""

    def __init__(self, rows: RowStore, interval: float = DEFAULT_POLL_SECONDS):
        self.rows = rows
        self.interval = interval
        self._tasks: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._tasks)

    def subscribe(
        self,
        user_id: str,
        tables: tuple[str, ...],
        callback: Callable[[ChangeEvent], None],
    ) -> Callable[[], None]:
        """Start polling for ``user_id``. Must be called on a running event loop."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._poll_loop(user_id, tuple(tables), callback))
        self._tasks.add(task)

        def unsubscribe() -> None:
            self._tasks.discard(task)
            task.cancel()

        return unsubscribe

    async def poll(
        self, user_id: str, tables: tuple[str, ...], snapshots: dict[str, Snapshot]
    ) -> list[ChangeEvent]:
        """Select each table once, update ``snapshots`` in place, return the changes.

        A table whose select fails keeps its previous snapshot and is retried
        on the next poll.
        """
        events: list[ChangeEvent] = []
        for table in tables:
            try:
                rows = await self.rows.select(table, user_id)
            except RemoteStoreError as e:
                logger.warning("Polling %s for changes failed: %s", table, e)
                continue
            current = snapshot(rows)
            previous = snapshots.get(table)
            snapshots[table] = current
            if previous is not None:
                events.extend(diff_snapshots(table, user_id, previous, current))
        return events

    async def _poll_loop(
        self,
        user_id: str,
        tables: tuple[str, ...],
        callback: Callable[[ChangeEvent], None],
    ) -> None:
        snapshots: dict[str, Snapshot] = {}
        await self.poll(user_id, tables, snapshots)
        while True:
            await asyncio.sleep(self.interval)
            events = await self.poll(user_id, tables, snapshots)
            if events:
                logger.debug("Polling found %d change(s) for %s", len(events), user_id)
            for event in events:
                try:
                    callback(event)
                except Exception:
                    logger.exception("Change feed subscriber failed")
