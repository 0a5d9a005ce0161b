"""Local persistence gateway over a key/value storage."""

from __future__ import annotations

import json
import logging

from ..exceptions import SchemaError, StorageError
from ..state.models import AppState
from ..state.schema import dump_state, parse_legacy_state, parse_state
from .interface import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "vibeflow-data-v2"
LEGACY_STORAGE_KEY = "vibeflow-data"


class LocalGateway:
    """Best-effort ``load``/``save`` of ``AppState`` under a versioned key.

    Failures are logged and swallowed: a broken or full storage degrades
    durability but never breaks the caller.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = STORAGE_KEY,
        legacy_key: str = LEGACY_STORAGE_KEY,
    ):
        self.storage = storage
        self.key = key
        self.legacy_key = legacy_key

    def _read_json(self, key: str):
        try:
            raw = self.storage.get(key)
        except StorageError:
            logger.warning("Failed to read %s from local storage", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unparseable JSON stored under %s", key)
            return None

    def load(self) -> AppState | None:
        data = self._read_json(self.key)
        if data is None:
            return None
        try:
            return parse_state(data)
        except SchemaError as e:
            logger.warning("Ignoring stored state under %s: %s", self.key, e)
            return None

    def save(self, state: AppState) -> bool:
        """Write ``state``. Returns False if the storage rejected the write."""
        try:
            self.storage.set(self.key, json.dumps(dump_state(state)))
        except StorageError:
            logger.warning("Failed to save state to local storage", exc_info=True)
            return False
        return True

    def load_legacy(self) -> AppState | None:
        data = self._read_json(self.legacy_key)
        if data is None:
            return None
        try:
            return parse_legacy_state(data)
        except SchemaError as e:
            logger.warning("Ignoring legacy state under %s: %s", self.legacy_key, e)
            return None

    def remove_legacy(self) -> None:
        self._remove(self.legacy_key)

    def clear(self) -> None:
        """Remove both the current and the legacy key."""
        self._remove(self.key)
        self._remove(self.legacy_key)

    def _remove(self, key: str) -> None:
        try:
            self.storage.remove(key)
        except StorageError:
            logger.warning("Failed to remove %s from local storage", key, exc_info=True)
