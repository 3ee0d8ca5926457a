"""ssrf-guard connection interception.

Public API:
    create_guarded_factory — entry point: new guarded factory per call
    guard_factory          — wrap an existing factory (idempotent)
    resolve_action         — block/report decision for a failed check
"""

from ssrf_guard.guard.actions import resolve_action
from ssrf_guard.guard.connection import (
    Connection,
    ConnectionFactory,
    ConnectionParams,
    SocketConnection,
    TCPConnectionFactory,
    TLSConnectionFactory,
)
from ssrf_guard.guard.interceptor import (
    GuardedConnectionFactory,
    create_guarded_factory,
    guard_factory,
)

__all__ = [
    "Connection",
    "ConnectionFactory",
    "ConnectionParams",
    "GuardedConnectionFactory",
    "SocketConnection",
    "TCPConnectionFactory",
    "TLSConnectionFactory",
    "create_guarded_factory",
    "guard_factory",
    "resolve_action",
]
