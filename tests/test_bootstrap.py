"""Tests for the database bootstrapper."""

from __future__ import annotations

from typing import Any

import asyncpg
import pytest

from pgbootstrap.bootstrap import EXISTS_QUERY, DatabaseBootstrapper
from pgbootstrap.models import ErrorKind


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _FakeServer:
    """Minimal stand-in for a PostgreSQL server tracking created databases."""

    def __init__(self, databases: set[str] | None = None) -> None:
        self.databases = set(databases or {"postgres"})
        self.created: list[str] = []
        self.probes: list[str] = []
        self.admin_connects: list[dict[str, Any]] = []
        self.open_connections = 0

    async def connect(self, **kwargs: Any) -> "_FakeConnection":
        if "dsn" in kwargs:
            self.probes.append(kwargs["dsn"])
        else:
            self.admin_connects.append(kwargs)
        self.open_connections += 1
        return _FakeConnection(self)


class _FakeConnection:
    def __init__(self, server: _FakeServer) -> None:
        self.server = server

    async def fetchval(self, query: str, *args: object) -> object:
        if query == EXISTS_QUERY:
            return 1 if args[0] in self.server.databases else None
        return 1

    async def execute(self, query: str) -> str:
        name = query.removeprefix("CREATE DATABASE ").strip('"')
        self.server.databases.add(name)
        self.server.created.append(name)
        return "CREATE DATABASE"

    async def close(self) -> None:
        self.server.open_connections -= 1


@pytest.mark.anyio
async def test_creates_missing_database_and_probes_it() -> None:
    server = _FakeServer()
    bootstrapper = DatabaseBootstrapper(connect=server.connect)

    result = await bootstrapper.ensure_database("localhost", 5432, "postgres", "pw", "testdb")

    assert result.ok is True
    assert result.created is True
    assert result.connection_string == "postgres://postgres:pw@localhost:5432/testdb"
    assert server.created == ["testdb"]
    assert server.admin_connects[0]["database"] == "postgres"
    assert server.probes == ["postgres://postgres:pw@localhost:5432/testdb"]
    assert server.open_connections == 0


@pytest.mark.anyio
async def test_ensure_database_is_idempotent() -> None:
    server = _FakeServer()
    bootstrapper = DatabaseBootstrapper(connect=server.connect)

    first = await bootstrapper.ensure_database("localhost", 5432, "postgres", "pw", "testdb")
    second = await bootstrapper.ensure_database("localhost", 5432, "postgres", "pw", "testdb")

    assert first and second
    assert (first.created, second.created) == (True, False)
    assert server.created == ["testdb"]
    assert len(server.probes) == 2


@pytest.mark.anyio
async def test_create_statement_quotes_identifier() -> None:
    statements: list[str] = []
    server = _FakeServer()

    class _Recording(_FakeConnection):
        async def execute(self, query: str) -> str:
            statements.append(query)
            return await super().execute(query)

    async def _connect(**kwargs: Any) -> _FakeConnection:
        await server.connect(**kwargs)
        return _Recording(server)

    await DatabaseBootstrapper(connect=_connect).ensure_database("h", 5432, "u", "p", "Talawa_API")

    assert statements == ['CREATE DATABASE "Talawa_API"']


@pytest.mark.anyio
async def test_unsafe_name_is_rejected_without_connecting() -> None:
    server = _FakeServer()

    result = await DatabaseBootstrapper(connect=server.connect).ensure_database(
        "localhost", 5432, "postgres", "pw", "x; DROP DATABASE postgres"
    )

    assert not result
    assert result.error_kind is ErrorKind.INVALID_NAME
    assert server.admin_connects == []


@pytest.mark.anyio
async def test_admin_connection_failure_returns_false() -> None:
    async def _connect(**kwargs: Any) -> None:
        raise asyncpg.exceptions.InvalidPasswordError("password authentication failed")

    result = await DatabaseBootstrapper(connect=_connect).ensure_database("h", 5432, "u", "bad", "app")

    assert result.ok is False
    assert result.error_kind is ErrorKind.AUTHENTICATION


@pytest.mark.anyio
async def test_admin_connection_closed_when_create_fails() -> None:
    server = _FakeServer()

    class _Failing(_FakeConnection):
        async def execute(self, query: str) -> str:
            raise asyncpg.exceptions.InsufficientPrivilegeError("permission denied to create database")

    async def _connect(**kwargs: Any) -> _FakeConnection:
        await server.connect(**kwargs)
        return _Failing(server)

    result = await DatabaseBootstrapper(connect=_connect).ensure_database("h", 5432, "u", "p", "app")

    assert result.ok is False
    assert result.error_kind is ErrorKind.QUERY_FAILED
    assert server.open_connections == 0


@pytest.mark.anyio
async def test_failed_reprobe_returns_false() -> None:
    server = _FakeServer()

    async def _connect(**kwargs: Any) -> _FakeConnection:
        if "dsn" in kwargs:
            raise ConnectionRefusedError("refused")
        return await server.connect(**kwargs)

    result = await DatabaseBootstrapper(connect=_connect).ensure_database("h", 5432, "u", "p", "app")

    assert result.ok is False
    assert result.created is True
    assert result.error_kind is ErrorKind.UNREACHABLE
