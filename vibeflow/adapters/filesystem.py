"""Key/value storage on the local filesystem, one file per key."""

from __future__ import annotations

import os
import re
from pathlib import Path

from ..exceptions import StorageError


def _filename(key: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", key) + ".json"


class JsonFileStorage:
    """KeyValueStorage that keeps each key in ``<directory>/<key>.json``.

    Writes go through a temporary file and an atomic rename, so a crash never
    leaves a half-written value behind.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / _filename(key)

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(key, str(e)) from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(key, str(e)) from e

    def remove(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(key, str(e)) from e
