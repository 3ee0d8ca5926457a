"""Connection interceptor — two-phase SSRF checks around a connection factory.

create_guarded_factory() is the public entry point. It builds a fresh
underlying factory for every call and, unless the mode is ``allow``, wraps it
in a GuardedConnectionFactory:

  Pre-DNS   create_connection() validates the requested host synchronously.
            A block raises SSRFBlockedError before the underlying factory is
            touched.
  Post-DNS  a one-shot lookup listener validates every resolved address.
            A block destroys the in-flight connection with SSRFBlockedError;
            the reason is always dns_rebinding.

The connection handle is returned synchronously, before the post-DNS
outcome is known.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Mapping, Optional, Union

from ssrf_guard.config import Options
from ssrf_guard.constants import HTTPS_PREFIX
from ssrf_guard.exceptions import SSRFBlockedError
from ssrf_guard.guard.actions import resolve_action
from ssrf_guard.guard.connection import (
    ConnectCallback,
    Connection,
    ConnectionFactory,
    ConnectionParams,
    TCPConnectionFactory,
    TLSConnectionFactory,
)
from ssrf_guard.models.validation import BlockReason, Mode
from ssrf_guard.utils.logger import get_logger
from ssrf_guard.validation.host import validate_host

logger = get_logger(__name__)

# Per-instance marker set on a factory once it has been wrapped
_GUARD_ATTR = "_ssrf_guard"


def _request_host(params: ConnectionParams) -> Optional[str]:
    host = params.host
    if not host:
        return None
    if host.startswith("[") and host.endswith("]"):
        return host[1:-1]
    return host


class GuardedConnectionFactory(ConnectionFactory):
    """A ConnectionFactory that validates hosts before and after DNS resolution.

    Owns exactly one underlying factory. Holds no per-connection state: the
    only per-connection state is the in-flight Connection and its lookup
    listener.
    """

    def __init__(self, inner: ConnectionFactory, options: Options) -> None:
        self.inner = inner
        self.options = options
        self.scheme = inner.scheme
        self.default_port = inner.default_port

    def create_connection(
        self,
        params: Union[ConnectionParams, Mapping[str, Any]],
        callback: Optional[ConnectCallback] = None,
    ) -> Optional[Connection]:
        params = ConnectionParams.coerce(params)
        host = _request_host(params)

        # ── 1. Pre-DNS check ────────────────────────────────────────────────
        if host:
            result = validate_host(host, self.options)
            if result.safe:
                logger.debug("Pre-DNS check passed", host=host)
            elif resolve_action(self.options, host, result.reason, original_hostname=host):
                raise SSRFBlockedError(result.reason, target=host, hostname=host)

        # ── 2. Delegate ────────────────────────────────────────────────────
        connection = self.inner.create_connection(params, callback)
        if connection is None:
            return None

        # ── 3. Post-DNS check (runs when the lookup notification fires) ───
        if self.options.detect_dns_rebinding:
            connection.on_lookup(
                partial(self._check_resolved, connection, host or connection.host)
            )

        return connection

    def _check_resolved(
        self,
        connection: Connection,
        hostname: str,
        error: Optional[BaseException],
        addresses: list[str],
    ) -> None:
        # Resolution failures surface through the connection itself
        if error is not None:
            return

        for address in addresses:
            result = validate_host(address, self.options)
            if result.safe:
                continue
            abort = resolve_action(
                self.options,
                hostname,
                BlockReason.DNS_REBINDING,
                resolved_ip=address,
                original_hostname=hostname,
            )
            if abort:
                connection.destroy(
                    SSRFBlockedError(
                        BlockReason.DNS_REBINDING,
                        target=hostname,
                        hostname=hostname,
                        ip=address,
                    )
                )
                return

        logger.debug("Post-DNS check passed", host=hostname, addresses=addresses)


def guard_factory(
    factory: ConnectionFactory,
    options: Optional[Options] = None,
) -> ConnectionFactory:
    """Wrap ``factory`` with SSRF checks, at most once per instance.

    Wrapping an instance that is already wrapped (or passing a
    GuardedConnectionFactory) returns the existing guard unchanged; the
    ``options`` of the second call are ignored.
    """
    if isinstance(factory, GuardedConnectionFactory):
        return factory
    existing = getattr(factory, _GUARD_ATTR, None)
    if existing is not None:
        return existing

    guarded = GuardedConnectionFactory(factory, options if options is not None else Options())
    setattr(factory, _GUARD_ATTR, guarded)
    return guarded


def _select_factory(url_or_protocol_hint: str, options: Options) -> ConnectionFactory:
    hints = (url_or_protocol_hint or "", options.protocol_hint or "")
    if any(hint.lower().startswith(HTTPS_PREFIX) for hint in hints):
        return TLSConnectionFactory()
    return TCPConnectionFactory()


def create_guarded_factory(
    url_or_protocol_hint: str = "",
    options: Optional[Options] = None,
) -> ConnectionFactory:
    """Build a new connection factory protected against SSRF.

    Args:
        url_or_protocol_hint: Target URL or protocol; ``https…`` selects TLS.
        options:              Guard options (defaults: block mode, metadata
                              blocking and rebinding detection on).

    Returns:
        A GuardedConnectionFactory, or the bare underlying factory in allow
        mode. Every call returns a new, unshared instance.
    """
    options = options if options is not None else Options()
    factory = _select_factory(url_or_protocol_hint, options)

    if options.mode is Mode.ALLOW:
        logger.debug("Allow mode — returning unguarded factory", scheme=factory.scheme)
        return factory

    return guard_factory(factory, options)
