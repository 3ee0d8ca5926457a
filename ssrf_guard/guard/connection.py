"""Connection factories — the collaborator the interceptor wraps.

A ConnectionFactory starts a connection and immediately hands back an
in-flight Connection. Name resolution and the TCP/TLS handshake run later in
an asyncio task, so anything the caller attaches to the Connection right
after ``create_connection()`` returns (such as a lookup listener) is in place
before resolution completes.

Connection lifecycle:

    create_connection() ──► resolving ──► lookup(err, addresses) ──► connecting ──► connected
                                 │                  │                     │
                                 └──── destroy() ───┴──────────────────────┴──► destroyed (terminal)

IP-literal hosts need no resolution and emit no lookup notification.
"""

from __future__ import annotations

import abc
import asyncio
import ipaddress
import socket
import ssl
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from ssrf_guard.constants import DEFAULT_CONNECT_HOST
from ssrf_guard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Type Aliases ─────────────────────────────────────────────────────────────

#: ``listener(error, addresses)``: error is set when resolution failed.
LookupListener = Callable[[Optional[BaseException], list[str]], None]

#: ``callback(error, connection)``: invoked once when connecting finishes.
ConnectCallback = Callable[[Optional[BaseException], "Connection"], None]

Streams = tuple[asyncio.StreamReader, asyncio.StreamWriter]


# ─── Parameters ───────────────────────────────────────────────────────────────


@dataclass
class ConnectionParams:
    """Parameters for one outbound connection.

    host:            Hostname or IP literal. None → the factory default (localhost).
    port:            TCP port. None → the factory default (80 / 443).
    server_hostname: TLS SNI / certificate name override (TLS factory only).
    timeout:         Per-address connect timeout in seconds, None for no limit.
    """

    host: Optional[str] = None
    port: Optional[int] = None
    server_hostname: Optional[str] = None
    timeout: Optional[float] = None

    @classmethod
    def coerce(cls, value: Union["ConnectionParams", Mapping[str, Any]]) -> "ConnectionParams":
        """Accept either ConnectionParams or a ``{"host": ..., "port": ...}`` mapping."""
        if isinstance(value, ConnectionParams):
            return value
        return cls(
            host=value.get("host"),
            port=value.get("port"),
            server_hostname=value.get("server_hostname"),
            timeout=value.get("timeout"),
        )


# ─── Interfaces ───────────────────────────────────────────────────────────────


class Connection(abc.ABC):
    """An in-flight outbound connection."""

    host: str
    port: int

    @abc.abstractmethod
    def on_lookup(self, listener: LookupListener) -> None:
        """Register a one-shot listener for the name-resolution result."""

    @abc.abstractmethod
    def destroy(self, error: Optional[BaseException] = None) -> None:
        """Terminate the connection. Idempotent; the first error wins."""

    @property
    @abc.abstractmethod
    def destroyed(self) -> bool:
        ...

    @property
    @abc.abstractmethod
    def error(self) -> Optional[BaseException]:
        ...

    @abc.abstractmethod
    async def wait_connected(self) -> Streams:
        """Wait for the handshake; raise the destroy/connect error on failure."""


class ConnectionFactory(abc.ABC):
    """Starts outbound connections."""

    scheme: str = "http"
    default_port: int = 80

    @abc.abstractmethod
    def create_connection(
        self,
        params: Union[ConnectionParams, Mapping[str, Any]],
        callback: Optional[ConnectCallback] = None,
    ) -> Optional[Connection]:
        """Begin a connection and return the in-flight handle."""


# ─── asyncio implementation ───────────────────────────────────────────────────


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _unbracket(host: str) -> str:
    if host.startswith("[") and host.endswith("]"):
        return host[1:-1]
    return host


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SocketConnection(Connection):
    """Connection driven by an asyncio task: resolve, notify, connect.

    Must be started from a running event loop (``start()``).
    """

    def __init__(
        self,
        host: str,
        port: int,
        ssl_context: Optional[ssl.SSLContext] = None,
        server_hostname: Optional[str] = None,
        timeout: Optional[float] = None,
        callback: Optional[ConnectCallback] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.address: Optional[str] = None
        self._ssl_context = ssl_context
        self._server_hostname = server_hostname
        self._timeout = timeout
        self._callback = callback
        self._lookup_listeners: list[LookupListener] = []
        self._task: Optional[asyncio.Task] = None
        self._done = asyncio.Event()
        self._destroyed = False
        self._error: Optional[BaseException] = None
        self._finished = False

    # ── Public API ────────────────────────────────────────────────────────────

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"connect:{self.host}:{self.port}")

    def on_lookup(self, listener: LookupListener) -> None:
        self._lookup_listeners.append(listener)

    def destroy(self, error: Optional[BaseException] = None) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        if error is not None and self._error is None:
            self._error = error
        if self.writer is not None:
            self.writer.close()
        task = self._task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        logger.debug(
            "Connection destroyed",
            host=self.host,
            port=self.port,
            error=str(error) if error else None,
        )
        self._finish()

    async def wait_connected(self) -> Streams:
        await self._done.wait()
        if self._error is not None:
            raise self._error
        if self._destroyed or self.reader is None or self.writer is None:
            raise ConnectionAbortedError(f"Connection to {self.host}:{self.port} was destroyed")
        return self.reader, self.writer

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        if _is_ip_literal(self.host):
            addresses = [self.host]
        else:
            loop = asyncio.get_running_loop()
            # UnicodeError: IDNA encoding rejects empty or over-long labels
            try:
                infos = await loop.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
            except (OSError, UnicodeError) as exc:
                self._emit_lookup(exc, [])
                self._fail(exc)
                return
            addresses = list(dict.fromkeys(str(info[4][0]) for info in infos))
            self._emit_lookup(None, addresses)

        if self._destroyed:
            return

        try:
            reader, writer = await self._open(addresses)
        except (OSError, asyncio.TimeoutError) as exc:
            self._fail(exc)
            return

        if self._destroyed:
            writer.close()
            return

        self.reader, self.writer = reader, writer
        self._finish()

    async def _open(self, addresses: list[str]) -> Streams:
        last_exc: Optional[BaseException] = None
        server_hostname = None
        if self._ssl_context is not None:
            server_hostname = self._server_hostname or self.host
        for address in addresses:
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(
                        address,
                        self.port,
                        ssl=self._ssl_context,
                        server_hostname=server_hostname,
                    ),
                    self._timeout,
                )
            except (OSError, asyncio.TimeoutError) as exc:
                last_exc = exc
                continue
            self.address = address
            return reader, writer
        if last_exc is not None:
            raise last_exc
        raise OSError(f"No addresses to connect to for {self.host}")

    def _emit_lookup(self, error: Optional[BaseException], addresses: list[str]) -> None:
        listeners, self._lookup_listeners = self._lookup_listeners, []
        for listener in listeners:
            try:
                listener(error, addresses)
            except Exception as exc:  # noqa: BLE001
                # A failing listener fails the connection closed
                logger.error(
                    "Lookup listener raised — destroying connection",
                    host=self.host,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                self.destroy(exc)
                return

    def _fail(self, error: BaseException) -> None:
        if self._error is None:
            self._error = error
        self._finish()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._done.set()
        if self._callback is not None:
            self._callback(self._error, self)


class TCPConnectionFactory(ConnectionFactory):
    """Plain TCP connections (HTTP)."""

    scheme = "http"
    default_port = 80

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        return None

    def create_connection(
        self,
        params: Union[ConnectionParams, Mapping[str, Any]],
        callback: Optional[ConnectCallback] = None,
    ) -> Optional[Connection]:
        params = ConnectionParams.coerce(params)
        connection = SocketConnection(
            host=_unbracket(params.host or DEFAULT_CONNECT_HOST),
            port=params.port or self.default_port,
            ssl_context=self._ssl_context(),
            server_hostname=params.server_hostname,
            timeout=params.timeout,
            callback=callback,
        )
        connection.start()
        return connection


class TLSConnectionFactory(TCPConnectionFactory):
    """TLS connections (HTTPS) with SNI set to the requested hostname."""

    scheme = "https"
    default_port = 443

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None) -> None:
        self.ssl_context = ssl_context if ssl_context is not None else ssl.create_default_context()

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        return self.ssl_context
