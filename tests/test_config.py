"""Tests for env-file configuration helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
from dotenv import dotenv_values

from pgbootstrap.config import AppConfig, ensure_database_segment, load_config, save_database_url


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so the values written by save_database_url are undone too.
    for key in ("POSTGRES_DB_URL", "PGBOOTSTRAP_ENV_FILE"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_load_config_returns_defaults_when_env_file_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path / ".env", environ={})

    assert config.database_url is None
    assert config.env_key == "POSTGRES_DB_URL"
    assert config.probe_timeout == 1.0
    assert config.max_attempts == 3


def test_load_config_reads_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "POSTGRES_DB_URL=postgres://postgres:pw@localhost:5432/app\n"
        "PGBOOTSTRAP_MAX_ATTEMPTS=5\n"
        "PGBOOTSTRAP_PROBE_TIMEOUT=0.5\n"
    )

    config = load_config(env_file, environ={})

    assert config.database_url == "postgres://postgres:pw@localhost:5432/app"
    assert config.max_attempts == 5
    assert config.probe_timeout == 0.5
    assert config.env_file == env_file


def test_process_environment_overrides_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("POSTGRES_DB_URL=postgres://file@localhost:5432/app\n")

    config = load_config(env_file, environ={"POSTGRES_DB_URL": "postgres://env@localhost:5432/app"})

    assert config.database_url == "postgres://env@localhost:5432/app"


def test_custom_env_key_is_honoured(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("PGBOOTSTRAP_ENV_KEY=APP_DB\nAPP_DB=postgres://u@h:1/app\n")

    config = load_config(env_file, environ={})

    assert config.env_key == "APP_DB"
    assert config.database_url == "postgres://u@h:1/app"


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://u:p@h:5432", "postgres://u:p@h:5432/talawa_api"),
        ("postgres://u:p@h:5432/", "postgres://u:p@h:5432/talawa_api"),
        ("postgres://u:p@h:5432/app", "postgres://u:p@h:5432/app"),
    ],
)
def test_ensure_database_segment(url: str, expected: str) -> None:
    assert ensure_database_segment(url, "talawa_api") == expected


def test_save_database_url_writes_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / "nested" / ".env"
    config = AppConfig(env_file=env_file)

    updated = save_database_url(config, "postgres://postgres:pw@localhost:5432/testdb")

    assert dotenv_values(env_file)["POSTGRES_DB_URL"] == "postgres://postgres:pw@localhost:5432/testdb"
    assert updated.database_url == "postgres://postgres:pw@localhost:5432/testdb"
    assert load_config(env_file, environ={}).database_url == updated.database_url


def test_save_database_url_preserves_other_keys(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("OTHER=1\nPOSTGRES_DB_URL=postgres://old@h:1/app\n")
    config = AppConfig(env_file=env_file, default_database="app")

    updated = save_database_url(config, "postgres://new@h:1")

    values = dotenv_values(env_file)
    assert values["OTHER"] == "1"
    assert values["POSTGRES_DB_URL"] == "postgres://new@h:1"
    assert updated.database_url == "postgres://new@h:1"
