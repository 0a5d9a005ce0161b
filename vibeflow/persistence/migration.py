"""First-load resolution of application state, local and authenticated.

Both paths always end with a non-empty ``AppState``.
"""

from __future__ import annotations

import logging

from ..state.actions import AddProject
from ..state.models import DEFAULT_PROJECT_NAME, AppState
from ..state.reducer import reduce
from .local import LocalGateway
from .remote import RemoteGateway

logger = logging.getLogger(__name__)


def default_state(name: str = DEFAULT_PROJECT_NAME) -> AppState:
    return reduce(AppState(), AddProject(name=name))


def load_local_state(local: LocalGateway) -> AppState:
    """Resolve the local state: current key, else legacy key, else a default project.

    The migrated state is written under the current key before the legacy key
    is removed. Since the current key is checked first, a crash between the
    two steps leaves a stale legacy key behind but never migrates twice.
    """
    state = local.load()
    if state is not None and state.projects:
        return state

    legacy = local.load_legacy()
    if legacy is not None:
        logger.info("Migrating legacy single-project data into %s", local.key)
        if local.save(legacy):
            local.remove_legacy()
        return legacy

    state = default_state()
    local.save(state)
    return state


async def load_remote_state(user_id: str, remote: RemoteGateway, local: LocalGateway) -> AppState:
    """Resolve the state of an authenticated user.

    Remote data wins when present. Otherwise local data (current or legacy)
    is uploaded and the local keys are cleared; with neither, a default
    project is created remotely. Raises ``RemoteStoreError`` on failure so
    the caller can fall back to local state.
    """
    state = await remote.fetch_user_data(user_id)
    if state.projects:
        return state

    local_state = local.load()
    if local_state is None or not local_state.projects:
        local_state = local.load_legacy()
    if local_state is not None and local_state.projects:
        logger.info(
            "Migrating %d local project(s) to remote storage for %s",
            len(local_state.projects),
            user_id,
        )
        await remote.upload_state(user_id, local_state)
        local.clear()
        return local_state

    state = default_state()
    await remote.upload_state(user_id, state)
    return state
