"""Owner of the application's shared asyncpg pool."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

import asyncpg

from .config import AppConfig, load_config
from .models import PgBootstrapError, TopologyResult, redact_connection_string
from .topology import TopologyChecker

LOG = logging.getLogger(__name__)

PoolFactory = Callable[..., Awaitable[Any]]


class ConnectionManagerError(PgBootstrapError):
    """Raised when the pool is used while the manager is not connected."""


class ConnectionManager:
    """Creates, classifies and tears down a single connection pool.

    ``connect`` and ``disconnect`` are idempotent: connecting twice keeps the
    first pool, disconnecting while unconnected only logs a warning. A pool
    that cannot be created is fatal and exits the process with status 1.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        pool_factory: PoolFactory | None = None,
        topology: TopologyChecker | None = None,
    ) -> None:
        self._config = config
        self._pool_factory = pool_factory or asyncpg.create_pool
        self._topology = topology or TopologyChecker()
        self._pool: Any | None = None
        self._topology_result: TopologyResult | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> Any:
        """The active pool; raises if ``connect`` has not succeeded."""

        if self._pool is None:
            raise ConnectionManagerError("No active database connection; call connect() first.")
        return self._pool

    @property
    def topology(self) -> TopologyResult | None:
        """Classification from the most recent successful connect."""

        return self._topology_result

    async def connect(self) -> None:
        async with self._lock:
            if self._pool is not None:
                LOG.info("Database connection already established.")
                return

            config = self._config or load_config()
            url = config.database_url
            if not url:
                LOG.error(
                    "No connection string configured; run the setup wizard first.",
                    extra={"key": config.env_key},
                )
                raise SystemExit(1)

            try:
                pool = await self._pool_factory(dsn=url)
            except Exception as exc:
                LOG.error(
                    "Error while connecting to the Postgres database: %s",
                    exc,
                    extra={"dsn": redact_connection_string(url)},
                )
                raise SystemExit(1) from exc

            self._pool = pool
            self._topology_result = await self._topology.classify(pool)
            if self._topology_result is TopologyResult.REPLICA_SET_MEMBER:
                LOG.info("Connected to a Postgres replica set!")
            else:
                LOG.info("Connected to a single Postgres instance.")

    async def disconnect(self) -> None:
        async with self._lock:
            if self._pool is None:
                LOG.warning("No active database connection to disconnect.")
                return
            try:
                await self._pool.close()
            finally:
                self._pool = None
                self._topology_result = None
            LOG.info("Database connection closed.")

    open = connect
    close = disconnect

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        """Borrow a connection from the pool for the duration of the block."""

        async with self.pool.acquire() as conn:
            yield conn

    async def __aenter__(self) -> ConnectionManager:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()


__all__ = ["ConnectionManager", "ConnectionManagerError"]
