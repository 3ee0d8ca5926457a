"""Exceptions raised by ssrf-guard.

Validation failures are values (ValidationResult), not exceptions. The only
exception on the connection path is SSRFBlockedError: raised synchronously by
a pre-DNS block, or passed to ``Connection.destroy()`` by a post-DNS block.
"""

from __future__ import annotations

from typing import Optional

from ssrf_guard.models.validation import BlockReason

# ─── Message Table ────────────────────────────────────────────────────────────

_BLOCK_MESSAGES: dict[BlockReason, str] = {
    BlockReason.PRIVATE_IP: "Private IP address {target} is not allowed",
    BlockReason.CLOUD_METADATA: "Cloud metadata endpoint {target} is not allowed",
    BlockReason.INVALID_DOMAIN: "Invalid domain {target}",
    BlockReason.DNS_REBINDING: "DNS rebinding attack detected for {hostname} -> {ip}",
    BlockReason.DENIED_DOMAIN: "Domain {target} is denied by policy",
    BlockReason.DENIED_TLD: "TLD of {target} is denied by policy",
    BlockReason.NOT_ALLOWED_DOMAIN: "Domain {target} is not in the allowed list",
}


def format_block_message(
    reason: BlockReason,
    target: str,
    hostname: Optional[str] = None,
    ip: Optional[str] = None,
) -> str:
    """Render the human-readable message for a blocked connection.

    ``hostname`` defaults to ``target`` and ``ip`` to ``"unknown"`` so the
    dns_rebinding template always renders.
    """
    return _BLOCK_MESSAGES[reason].format(
        target=target,
        hostname=hostname if hostname is not None else target,
        ip=ip if ip is not None else "unknown",
    )


# ─── Exceptions ───────────────────────────────────────────────────────────────


class SSRFGuardError(Exception):
    """Base exception for ssrf-guard errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SSRFBlockedError(SSRFGuardError):
    """Raised when a connection is aborted in block mode.

    Attributes:
        reason:   BlockReason that triggered the abort.
        target:   Host that was checked (pre-DNS hostname, or original
                  hostname for a rebinding block).
        hostname: Hostname the caller asked for.
        ip:       Resolved address that failed the post-DNS check, if any.
    """

    def __init__(
        self,
        reason: BlockReason,
        target: str,
        hostname: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> None:
        super().__init__(format_block_message(reason, target, hostname=hostname, ip=ip))
        self.reason = reason
        self.target = target
        self.hostname = hostname
        self.ip = ip


class ConfigError(SSRFGuardError):
    """Raised by load_options() for an unreadable or invalid config file."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path
