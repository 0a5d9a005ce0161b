"""Application store: owns the current ``AppState`` and publishes transitions.

``dispatch`` runs the reducer and hands every observer a ``Transition``
carrying the side effects the new state calls for. The store never performs
those effects itself; the effect worker consumes them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .actions import Action, Hydrate
from .models import AppState
from .reducer import reduce

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Effect:
    """Base class for side-effect descriptors."""


@dataclass(frozen=True)
class PersistLocal(Effect):
    state: AppState


@dataclass(frozen=True)
class SyncRemote(Effect):
    user_id: str
    previous: AppState
    current: AppState


@dataclass
class Transition:
    action: Action
    previous: AppState
    state: AppState
    effects: list[Effect] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.previous is not self.state


Listener = Callable[[Transition], None]


def plan_effects(action: Action, previous: AppState, state: AppState, user_id: str | None) -> list[Effect]:
    """Side effects owed after ``previous -> state``.

    Local persistence follows every change. Remote sync follows every change
    except hydration, whose payload came from storage in the first place.
    """
    if previous is state:
        return []
    effects: list[Effect] = [PersistLocal(state)]
    if user_id is not None and not isinstance(action, Hydrate):
        effects.append(SyncRemote(user_id=user_id, previous=previous, current=state))
    return effects


class AppStore:
    """Single owner of the in-memory application state."""

    def __init__(self, state: AppState | None = None, user_id: str | None = None) -> None:
        self._state = state if state is not None else AppState()
        self.user_id = user_id
        self._listeners: list[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every transition. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> Transition:
        previous = self._state
        state = reduce(previous, action)
        transition = Transition(
            action=action,
            previous=previous,
            state=state,
            effects=plan_effects(action, previous, state, self.user_id),
        )
        self._state = state
        if transition.changed:
            self._notify(transition)
        return transition

    def _notify(self, transition: Transition) -> None:
        for listener in list(self._listeners):
            try:
                listener(transition)
            except Exception:
                logger.exception("Store listener %r failed", listener)
