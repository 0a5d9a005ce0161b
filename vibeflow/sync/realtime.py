"""Realtime merge: refetch remote state when another session changes it.

Any change notification on the user's synced tables schedules a refetch after
a trailing debounce window, so a burst of notifications costs one fetch. A
single-slot state machine (idle -> scheduled -> fetching -> idle) keeps at
most one fetch in flight; notifications that arrive mid-fetch schedule one
more pass once it finishes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from enum import Enum
from typing import Callable

from ..persistence.interface import SYNCED_TABLES, ChangeEvent, ChangeFeed
from ..persistence.remote import RemoteGateway
from ..state.actions import Hydrate
from ..state.models import AppState, KanbanCard, Project
from ..state.store import AppStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.1


class RefetchState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FETCHING = "fetching"


def _keep_local_fields(card: KanbanCard, local: Project) -> KanbanCard:
    mine = local.find_card(card.id)
    if mine is None:
        return card
    return replace(card, priority=mine.priority, due_date=mine.due_date)


def merge_remote_state(local: AppState, fetched: AppState) -> AppState:
    """Merge freshly fetched remote state into the local view.

    The remote copy wins for projects, cards and todos. Fields with no remote
    column stay local: calendar events and the activity log of every project
    that still exists, and the priority and due date of every card that
    still exists. The active project is kept if it survived the fetch;
    otherwise the fetched default applies.
    """
    local_by_id = {p.id: p for p in local.projects}
    projects = []
    for project in fetched.projects:
        mine = local_by_id.get(project.id)
        if mine is not None:
            project = replace(
                project,
                cards=[_keep_local_fields(card, mine) for card in project.cards],
                events=mine.events,
                activities=mine.activities,
            )
        projects.append(project)

    active = fetched.active_project_id
    if any(p.id == local.active_project_id for p in projects):
        active = local.active_project_id
    return AppState(projects=projects, active_project_id=active)


class RealtimeMerger:
    """Subscribes to a ``ChangeFeed`` and hydrates the store from remote state."""

    def __init__(
        self,
        store: AppStore,
        remote: RemoteGateway,
        feed: ChangeFeed,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._store = store
        self._remote = remote
        self._feed = feed
        self._debounce = debounce_seconds
        self._user_id: str | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._task: asyncio.Task | None = None
        self._deadline = 0.0
        self._pending = False
        self.state = RefetchState.IDLE
        self.refetch_count = 0

    def start(self, user_id: str) -> None:
        if self._unsubscribe is not None:
            self.stop_subscription()
        self._user_id = user_id
        self._unsubscribe = self._feed.subscribe(user_id, SYNCED_TABLES, self.notify)
        logger.debug("Subscribed to realtime changes for %s", user_id)

    def stop_subscription(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def stop(self) -> None:
        """Unsubscribe and cancel any scheduled or in-flight refetch."""
        self.stop_subscription()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._pending = False
        self.state = RefetchState.IDLE

    def notify(self, event: ChangeEvent | None = None) -> None:
        """Change-feed callback. Must be called on the event loop thread."""
        if self._user_id is None:
            return
        if event is not None:
            logger.debug("Change on %s (%s)", event.table, event.event_type)

        loop = asyncio.get_running_loop()
        if self.state is RefetchState.FETCHING:
            self._pending = True
            return
        self._deadline = loop.time() + self._debounce
        if self.state is RefetchState.IDLE:
            self.state = RefetchState.SCHEDULED
            self._task = loop.create_task(self._drive())

    async def wait_idle(self) -> None:
        """Wait for the current scheduled/in-flight refetch cycle to finish."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def _drive(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                delay = self._deadline - loop.time()
                while delay > 0:
                    await asyncio.sleep(delay)
                    delay = self._deadline - loop.time()

                self.state = RefetchState.FETCHING
                await self.refetch()

                if not self._pending:
                    break
                self._pending = False
                self._deadline = loop.time() + self._debounce
                self.state = RefetchState.SCHEDULED
        finally:
            self.state = RefetchState.IDLE

    async def refetch(self) -> bool:
        """Fetch remote state and hydrate the store. Returns False on failure."""
        if self._user_id is None:
            return False
        try:
            fetched = await self._remote.fetch_user_data(self._user_id)
        except Exception as e:
            logger.error("Realtime refetch failed: %s", e, exc_info=True)
            return False
        self.refetch_count += 1
        self._store.dispatch(Hydrate(merge_remote_state(self._store.state, fetched)))
        return True
