"""Create the target database when it does not exist yet."""

from __future__ import annotations

import logging

import asyncpg

from .models import (
    BootstrapResult,
    ConnectionConfig,
    ErrorKind,
    InvalidDatabaseName,
    quote_identifier,
    validate_database_name,
)
from .probe import ConnectFn, ConnectionProber, classify_error

LOG = logging.getLogger(__name__)

EXISTS_QUERY = "SELECT 1 FROM pg_database WHERE datname = $1"


class DatabaseBootstrapper:
    """Ensures a database exists, then verifies it end to end."""

    def __init__(
        self,
        *,
        admin_database: str = "postgres",
        prober: ConnectionProber | None = None,
        connect: ConnectFn | None = None,
        connect_timeout: float = 5.0,
    ) -> None:
        self._admin_database = admin_database
        self._connect = connect or asyncpg.connect
        self._prober = prober or ConnectionProber(timeout=connect_timeout, connect=self._connect)
        self._connect_timeout = connect_timeout

    async def ensure_database(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        target: str,
    ) -> BootstrapResult:
        """Create ``target`` if missing and re-probe it; never raises."""

        try:
            validate_database_name(target)
        except InvalidDatabaseName as exc:
            LOG.error("Refusing to create database: %s", exc)
            return BootstrapResult(ok=False, error_kind=ErrorKind.INVALID_NAME, message=str(exc))

        try:
            connection_string = ConnectionConfig(
                host=host,
                port=port,
                database=target,
                user=user,
                password=password,
            ).connection_string()
            created = await self._create_if_missing(host, port, user, password, target)
        except Exception as exc:
            kind = classify_error(exc)
            LOG.error(
                "Error creating the database or checking the connection: %s",
                exc,
                extra={"database": target, "error_kind": kind.value},
            )
            return BootstrapResult(ok=False, error_kind=kind, message=str(exc) or exc.__class__.__name__)

        LOG.info("Checking connection to the database", extra={"database": target})
        probe = await self._prober.probe(connection_string)
        if not probe:
            return BootstrapResult(
                ok=False,
                created=created,
                connection_string=connection_string,
                error_kind=probe.error_kind,
                message=probe.message,
            )
        LOG.info("Connected to the database", extra={"database": target, "user": user})
        return BootstrapResult(ok=True, created=created, connection_string=connection_string)

    async def _create_if_missing(self, host: str, port: int, user: str, password: str, target: str) -> bool:
        conn = await self._connect(
            host=host,
            port=port,
            user=user,
            password=password,
            database=self._admin_database,
            timeout=self._connect_timeout,
        )
        try:
            exists = await conn.fetchval(EXISTS_QUERY, target)
            if exists:
                LOG.info("Database already exists", extra={"database": target})
                return False
            LOG.info("Creating database", extra={"database": target})
            await conn.execute(f"CREATE DATABASE {quote_identifier(target)}")
            LOG.info("Database created", extra={"database": target})
            return True
        finally:
            await conn.close()


__all__ = ["DatabaseBootstrapper", "EXISTS_QUERY"]
