"""Configuration loading and persistence backed by an env file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping
from urllib.parse import urlsplit

from dotenv import dotenv_values, set_key
from pydantic import BaseModel, Field

LOG = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path(".env")
DEFAULT_ENV_KEY = "POSTGRES_DB_URL"
OVERRIDE_PREFIX = "PGBOOTSTRAP_"


class AppConfig(BaseModel):
    """Runtime settings for the connection lifecycle."""

    env_file: Path = DEFAULT_ENV_FILE
    env_key: str = DEFAULT_ENV_KEY
    database_url: str | None = None
    default_database: str = "postgres"
    admin_database: str = "postgres"
    probe_timeout: float = Field(default=1.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)

    def with_database_url(self, url: str) -> AppConfig:
        """Return a copy with the connection string updated."""

        return self.model_copy(update={"database_url": url})


def load_config(
    env_file: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load settings from the env file, overlaid with the process environment.

    Process environment wins over the file so an exported ``POSTGRES_DB_URL``
    overrides whatever was persisted by a previous setup run. Tunables can be
    set with ``PGBOOTSTRAP_<FIELD>`` variables in either place.
    """

    env = os.environ if environ is None else environ
    path = Path(env_file) if env_file is not None else Path(env.get(f"{OVERRIDE_PREFIX}ENV_FILE", DEFAULT_ENV_FILE))
    values: dict[str, str] = {}
    if path.is_file():
        try:
            values.update({key: value for key, value in dotenv_values(path).items() if value is not None})
        except OSError as exc:
            LOG.warning("Could not read env file", extra={"path": str(path), "error": str(exc)})
    values.update(env)

    data: dict[str, object] = {"env_file": path}
    for field in ("env_key", "default_database", "admin_database", "probe_timeout", "max_attempts"):
        override = values.get(f"{OVERRIDE_PREFIX}{field.upper()}")
        if override:
            data[field] = override
    env_key = str(data.get("env_key", DEFAULT_ENV_KEY))
    url = values.get(env_key)
    if url:
        data["database_url"] = url
    return AppConfig(**data)


def ensure_database_segment(url: str, database: str) -> str:
    """Append ``/database`` when the connection string has no path segment."""

    path = urlsplit(url).path
    if path and path != "/":
        return url
    return f"{url.rstrip('/')}/{database}"


def save_database_url(config: AppConfig, url: str) -> AppConfig:
    """Persist ``url`` unchanged into the env file and the current process environment."""

    config.env_file.parent.mkdir(parents=True, exist_ok=True)
    config.env_file.touch(exist_ok=True)
    set_key(str(config.env_file), config.env_key, url, quote_mode="never")
    os.environ[config.env_key] = url
    LOG.info("Saved connection string", extra={"path": str(config.env_file), "key": config.env_key})
    return config.with_database_url(url)


__all__ = [
    "AppConfig",
    "DEFAULT_ENV_FILE",
    "DEFAULT_ENV_KEY",
    "ensure_database_segment",
    "load_config",
    "save_database_url",
]
