"""httpx integration — route httpcore connections through a guarded factory.

httpx → httpcore.AsyncConnectionPool → GuardedNetworkBackend.connect_tcp()
      → GuardedConnectionFactory.create_connection() → SocketConnection

Every connection in a redirect chain goes through connect_tcp(), so the
pre-DNS and post-DNS checks apply to redirect targets too. httpcore
negotiates TLS itself (``start_tls``), which is why the backend always wraps a
plain TCP factory.

Usage::

    async with guarded_async_client(Options(mode=Mode.BLOCK)) as client:
        response = await client.get(url)   # SSRFBlockedError on a blocked target
"""

from __future__ import annotations

import asyncio
import ssl
from typing import Any, Iterable, Optional

import httpcore
import httpx

from ssrf_guard.config import Options
from ssrf_guard.guard.connection import ConnectionFactory, ConnectionParams, TCPConnectionFactory
from ssrf_guard.guard.interceptor import guard_factory
from ssrf_guard.models.validation import Mode
from ssrf_guard.utils.logger import get_logger

logger = get_logger(__name__)


class AsyncioStream(httpcore.AsyncNetworkStream):
    """httpcore network stream over an asyncio reader/writer pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    async def read(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        try:
            return await asyncio.wait_for(self._reader.read(max_bytes), timeout)
        except asyncio.TimeoutError as exc:
            raise httpcore.ReadTimeout(str(exc)) from exc
        except OSError as exc:
            raise httpcore.ReadError(str(exc)) from exc

    async def write(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        if not buffer:
            return
        try:
            self._writer.write(buffer)
            await asyncio.wait_for(self._writer.drain(), timeout)
        except asyncio.TimeoutError as exc:
            raise httpcore.WriteTimeout(str(exc)) from exc
        except OSError as exc:
            raise httpcore.WriteError(str(exc)) from exc

    async def aclose(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as exc:
            logger.debug("Error while closing stream", error=str(exc))

    async def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpcore.AsyncNetworkStream:
        try:
            await asyncio.wait_for(
                self._writer.start_tls(ssl_context, server_hostname=server_hostname),
                timeout,
            )
        except asyncio.TimeoutError as exc:
            raise httpcore.ConnectTimeout(str(exc)) from exc
        except OSError as exc:
            raise httpcore.ConnectError(str(exc)) from exc
        return self

    def get_extra_info(self, info: str) -> Any:
        if info == "ssl_object":
            return self._writer.get_extra_info("ssl_object")
        if info == "client_addr":
            return self._writer.get_extra_info("sockname")
        if info == "server_addr":
            return self._writer.get_extra_info("peername")
        if info == "socket":
            return self._writer.get_extra_info("socket")
        if info == "is_readable":
            return self._reader.at_eof()
        return None


class GuardedNetworkBackend(httpcore.AsyncNetworkBackend):
    """httpcore network backend that opens connections through a guarded factory.

    ``local_address`` and ``socket_options`` are not supported and ignored.
    Unix socket connections are refused.
    """

    def __init__(
        self,
        options: Optional[Options] = None,
        factory: Optional[ConnectionFactory] = None,
    ) -> None:
        self.options = options if options is not None else Options()
        inner = factory if factory is not None else TCPConnectionFactory()
        if self.options.mode is Mode.ALLOW:
            self.factory = inner
        else:
            self.factory = guard_factory(inner, self.options)

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: Optional[Iterable[Any]] = None,
    ) -> httpcore.AsyncNetworkStream:
        connection = self.factory.create_connection(
            ConnectionParams(host=host, port=port, timeout=timeout)
        )
        if connection is None:
            raise httpcore.ConnectError(f"No connection could be started for {host}:{port}")

        try:
            reader, writer = await connection.wait_connected()
        except asyncio.CancelledError:
            connection.destroy()
            raise
        except asyncio.TimeoutError as exc:
            raise httpcore.ConnectTimeout(str(exc)) from exc
        except (OSError, UnicodeError) as exc:
            raise httpcore.ConnectError(str(exc)) from exc
        return AsyncioStream(reader, writer)

    async def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options: Optional[Iterable[Any]] = None,
    ) -> httpcore.AsyncNetworkStream:
        raise httpcore.ConnectError("Unix socket connections are not allowed")

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def guarded_async_client(
    options: Optional[Options] = None,
    ssl_context: Optional[ssl.SSLContext] = None,
    *,
    http1: bool = True,
    http2: bool = False,
    limits: Optional[httpx.Limits] = None,
    retries: int = 0,
    **client_kwargs: Any,
) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient whose connections are SSRF-guarded.

    Environment proxies are disabled by default (``trust_env=False``): a
    proxy transport would open its own connections outside the guard.

    Args:
        options:       Guard options.
        ssl_context:   TLS context for https:// targets (default context if None).
        http1, http2:  Protocol versions offered by the pool.
        limits:        Pool limits (httpx defaults if None).
        retries:       Connect retries inside the pool.
        client_kwargs: Passed to httpx.AsyncClient (timeout, headers, ...).
    """
    if limits is None:
        limits = httpx.Limits(max_connections=100, max_keepalive_connections=20)
    transport = httpx.AsyncHTTPTransport(http1=http1, http2=http2, limits=limits, retries=retries)
    # Uses httpx's internal _pool attribute (httpx 0.27/0.28); the replacement
    # pool mirrors the transport's settings
    transport._pool = httpcore.AsyncConnectionPool(
        ssl_context=ssl_context if ssl_context is not None else ssl.create_default_context(),
        max_connections=limits.max_connections,
        max_keepalive_connections=limits.max_keepalive_connections,
        keepalive_expiry=limits.keepalive_expiry,
        http1=http1,
        http2=http2,
        retries=retries,
        network_backend=GuardedNetworkBackend(options),
    )
    client_kwargs.setdefault("trust_env", False)
    return httpx.AsyncClient(transport=transport, **client_kwargs)
