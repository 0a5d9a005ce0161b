"""Vibeflow configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "vibeflow.yaml"

ENV_VARS = {
    "VIBEFLOW_DATA_DIR": "data_dir",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_ANON_KEY": "supabase_key",
    "VIBEFLOW_USER_ID": "user_id",
    "VIBEFLOW_ACCESS_TOKEN": "access_token",
    "GOOGLE_CLIENT_ID": "google_client_id",
    "VIBEFLOW_LOG_LEVEL": "log_level",
    "VIBEFLOW_POLL_SECONDS": "poll_interval_seconds",
}


def _default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "vibeflow"


@dataclass
class VibeflowConfig:
    """Settings for storage, remote sync and integrations."""

    data_dir: Path | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None
    user_id: str | None = None
    access_token: str | None = None
    google_client_id: str | None = None
    refetch_debounce_seconds: float = 0.1
    poll_interval_seconds: float = 5.0
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir) if self.data_dir else _default_data_dir()

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key and self.user_id)

    @classmethod
    def load(cls, path: Path | None = None, environ: dict | None = None) -> "VibeflowConfig":
        """Build a config from defaults, a YAML file, then environment variables."""
        environ = os.environ if environ is None else environ
        values: dict = {}

        data_dir = environ.get("VIBEFLOW_DATA_DIR")
        config_path = path or Path(data_dir or _default_data_dir()) / CONFIG_FILENAME
        values.update(_read_yaml(config_path))

        for var, name in ENV_VARS.items():
            if environ.get(var):
                values[name] = environ[var]

        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        config = cls(**{k: v for k, v in values.items() if k in known})
        config.refetch_debounce_seconds = float(config.refetch_debounce_seconds)
        config.poll_interval_seconds = float(config.poll_interval_seconds)
        return config


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        logger.warning("Ignoring unreadable config file %s", path, exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}
