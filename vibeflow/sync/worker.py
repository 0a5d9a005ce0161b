"""Effect worker: runs the side effects published by the store, in order."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from ..persistence.local import LocalGateway
from ..state.store import Effect, PersistLocal, SyncRemote, Transition
from .diff import DiffSyncEngine, SyncResult

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    LOCAL = "local"        # not authenticated, local storage only
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class EffectWorker:
    """Consumes effect descriptors from a FIFO queue on the running event loop.

    Effects run strictly in dispatch order. Failures are terminal here: they
    are logged and reflected in ``status``, never raised to the dispatcher.
    """

    def __init__(
        self,
        local: LocalGateway,
        engine: DiffSyncEngine | None = None,
        on_status: Callable[[SyncStatus], None] | None = None,
    ) -> None:
        self._local = local
        self._engine = engine
        self._on_status = on_status
        self._queue: asyncio.Queue[Effect] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self.status = SyncStatus.LOCAL if engine is None else SyncStatus.SYNCED
        self.last_sync: SyncResult | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def submit(self, effects: list[Effect]) -> None:
        for effect in effects:
            self._queue.put_nowait(effect)

    def on_transition(self, transition: Transition) -> None:
        """Store listener: enqueue the transition's effects."""
        self.submit(transition.effects)

    async def join(self) -> None:
        """Wait until every submitted effect has been handled."""
        await self._queue.join()

    def _set_status(self, status: SyncStatus) -> None:
        if status is self.status:
            return
        self.status = status
        if self._on_status is not None:
            self._on_status(status)

    async def _run(self) -> None:
        while True:
            effect = await self._queue.get()
            try:
                await self.handle(effect)
            except Exception:
                logger.exception("Unhandled failure running effect %s", type(effect).__name__)
            finally:
                self._queue.task_done()

    async def handle(self, effect: Effect) -> None:
        if isinstance(effect, PersistLocal):
            self._local.save(effect.state)
        elif isinstance(effect, SyncRemote):
            if self._engine is None:
                return
            self._set_status(SyncStatus.SYNCING)
            result = await self._engine.sync(effect.user_id, effect.previous, effect.current)
            self.last_sync = result
            self._set_status(SyncStatus.SYNCED if result.ok else SyncStatus.ERROR)
        else:
            logger.warning("Ignoring unknown effect %r", effect)
