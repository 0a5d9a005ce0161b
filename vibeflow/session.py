"""Session coordinator: wires store, persistence, diff-sync and realtime merge.

Usage:
    session = VibeflowSession.from_config(VibeflowConfig.load())
    await session.start()
    session.dispatch(AddCard(title="Design"))
    await session.stop()
"""

from __future__ import annotations

import logging
from typing import Callable

from .config import VibeflowConfig
from .persistence.interface import ChangeFeed, KeyValueStorage, RowStore
from .persistence.local import LocalGateway
from .persistence.migration import load_local_state, load_remote_state
from .persistence.remote import RemoteGateway
from .state.actions import Action, Hydrate
from .state.models import AppState
from .state.store import AppStore, Listener
from .sync.diff import DiffSyncEngine
from .sync.realtime import DEFAULT_DEBOUNCE_SECONDS, RealtimeMerger
from .sync.worker import EffectWorker, SyncStatus

logger = logging.getLogger(__name__)


class VibeflowSession:
    """Owns the application state for one user on one device.

    Without a row store (or without a user id) the session is local-only.
    If the initial remote load fails, the session falls back to local
    storage and stays local-only until restarted, so no diff is ever
    computed against a baseline the remote never saw.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        rows: RowStore | None = None,
        feed: ChangeFeed | None = None,
        user_id: str | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.local = LocalGateway(storage)
        self.remote = RemoteGateway(rows) if rows is not None else None
        self.user_id = user_id if self.remote is not None else None
        self.store = AppStore()
        self.worker = EffectWorker(
            self.local,
            DiffSyncEngine(self.remote) if self.user_id else None,
            on_status=self._on_status,
        )
        self.feed = feed
        self.realtime = (
            RealtimeMerger(self.store, self.remote, feed, debounce_seconds)
            if self.user_id and feed is not None
            else None
        )
        self.sync_status = self.worker.status
        self.last_error: str | None = None
        self._status_listeners: list[Callable[[SyncStatus], None]] = []
        self._unsubscribe_worker: Callable[[], None] | None = None
        self.config: VibeflowConfig | None = None

    @classmethod
    def from_config(
        cls,
        config: VibeflowConfig,
        feed: ChangeFeed | None = None,
        realtime: bool = True,
    ) -> "VibeflowSession":
        """Build a session from ``config``.

        With remote sync enabled and no ``feed`` given, remote changes are
        picked up by polling every ``poll_interval_seconds`` (0 disables it).
        Pass ``realtime=False`` for short-lived sessions such as CLI commands.
        """
        from .adapters.filesystem import JsonFileStorage

        rows = None
        if config.remote_enabled:
            from .adapters.supabase import SupabaseRowStore

            rows = SupabaseRowStore(config.supabase_url, config.supabase_key, config.access_token)
            if feed is None and realtime and config.poll_interval_seconds > 0:
                from .adapters.polling import PollingChangeFeed

                feed = PollingChangeFeed(rows, config.poll_interval_seconds)
        session = cls(
            JsonFileStorage(config.data_dir),
            rows=rows,
            feed=feed if realtime else None,
            user_id=config.user_id,
            debounce_seconds=config.refetch_debounce_seconds,
        )
        session.config = config
        return session

    @property
    def state(self) -> AppState:
        return self.store.state

    @property
    def authenticated(self) -> bool:
        return self.store.user_id is not None

    def _on_status(self, status: SyncStatus) -> None:
        self.sync_status = status
        if status is SyncStatus.ERROR and self.worker.last_sync is not None:
            self.last_error = "; ".join(self.worker.last_sync.errors)
        for listener in list(self._status_listeners):
            listener(status)

    def on_status(self, listener: Callable[[SyncStatus], None]) -> None:
        self._status_listeners.append(listener)

    async def start(self) -> AppState:
        """Load initial state, then start the effect worker and realtime merge."""
        state = None
        if self.remote is not None and self.user_id:
            try:
                state = await load_remote_state(self.user_id, self.remote, self.local)
            except Exception as e:
                logger.error("Remote load failed, using local storage: %s", e, exc_info=True)
                self.last_error = str(e)
                self._on_status(SyncStatus.ERROR)

        if state is None:
            state = load_local_state(self.local)
            self.store.user_id = None
        else:
            self.store.user_id = self.user_id

        self._unsubscribe_worker = self.store.subscribe(self.worker.on_transition)
        self.worker.start()
        self.store.dispatch(Hydrate(state))

        if self.realtime is not None and self.authenticated:
            self.realtime.start(self.user_id)
        return self.store.state

    def dispatch(self, action: Action) -> AppState:
        return self.store.dispatch(action).state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    async def flush(self) -> None:
        """Wait until every queued persistence and sync effect has run."""
        await self.worker.join()

    async def refresh(self) -> bool:
        """Refetch remote state now. Returns False when local-only or on failure."""
        if self.realtime is None or not self.authenticated:
            return False
        return await self.realtime.refetch()

    async def stop(self) -> None:
        await self.flush()
        if self.realtime is not None:
            await self.realtime.stop()
        await self.worker.stop()
        if self._unsubscribe_worker is not None:
            self._unsubscribe_worker()
            self._unsubscribe_worker = None
