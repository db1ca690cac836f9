"""Short-lived liveness probes against a PostgreSQL connection string."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import asyncpg

from .models import ErrorKind, ProbeResult, redact_connection_string

LOG = logging.getLogger(__name__)

ConnectFn = Callable[..., Awaitable[Any]]

PROBE_QUERY = "SELECT 1"


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a driver or socket exception onto an :class:`ErrorKind`."""

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(
        exc,
        (
            asyncpg.exceptions.InvalidPasswordError,
            asyncpg.exceptions.InvalidAuthorizationSpecificationError,
        ),
    ):
        return ErrorKind.AUTHENTICATION
    if isinstance(exc, asyncpg.exceptions.InvalidCatalogNameError):
        return ErrorKind.MISSING_DATABASE
    if isinstance(exc, asyncpg.PostgresError):
        return ErrorKind.QUERY_FAILED
    if isinstance(exc, OSError):
        return ErrorKind.UNREACHABLE
    if isinstance(exc, ValueError):
        return ErrorKind.INVALID_DSN
    return ErrorKind.UNKNOWN


class ConnectionProber:
    """Opens a connection, runs ``SELECT 1`` and closes it again."""

    def __init__(self, *, timeout: float = 1.0, connect: ConnectFn | None = None) -> None:
        self._timeout = timeout
        self._connect = connect or asyncpg.connect

    @property
    def timeout(self) -> float:
        return self._timeout

    async def probe(self, connection_string: str, timeout: float | None = None) -> ProbeResult:
        """Return a successful result if the server answers within ``timeout`` seconds.

        Never raises; failures are logged and reported through the result's
        ``error_kind``.
        """

        limit = self._timeout if timeout is None else timeout
        target = redact_connection_string(connection_string)
        LOG.debug("Probing connection", extra={"dsn": target, "timeout": limit})
        try:
            await asyncio.wait_for(self._round_trip(connection_string, limit), timeout=limit)
        except Exception as exc:
            kind = classify_error(exc)
            message = str(exc) or exc.__class__.__name__
            LOG.warning(
                "Connection probe failed: %s",
                message,
                extra={"dsn": target, "error_kind": kind.value},
            )
            return ProbeResult.failure(kind, message)
        LOG.info("Connection probe succeeded", extra={"dsn": target})
        return ProbeResult.success()

    async def _round_trip(self, connection_string: str, timeout: float) -> None:
        conn = await self._connect(dsn=connection_string, timeout=timeout)
        try:
            await conn.fetchval(PROBE_QUERY)
        finally:
            try:
                await conn.close()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                LOG.debug("Ignoring error while closing probe connection", extra={"error": str(exc)})


async def probe(connection_string: str, timeout_ms: int = 1000) -> bool:
    """Probe ``connection_string`` with a fresh :class:`ConnectionProber`."""

    result = await ConnectionProber(timeout=timeout_ms / 1000).probe(connection_string)
    return result.ok


__all__ = ["ConnectionProber", "PROBE_QUERY", "classify_error", "probe"]
