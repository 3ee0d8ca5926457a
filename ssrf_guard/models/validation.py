"""Validation result contracts shared by the validators and the interceptor.

ValidationResult is the single value every check returns. A failed check is
never an exception — it is a ``ValidationResult(safe=False, reason=...)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BlockReason(str, Enum):
    """Why a host or resolved address was rejected."""

    PRIVATE_IP = "private_ip"
    CLOUD_METADATA = "cloud_metadata"
    INVALID_DOMAIN = "invalid_domain"
    DNS_REBINDING = "dns_rebinding"
    DENIED_DOMAIN = "denied_domain"
    DENIED_TLD = "denied_tld"
    NOT_ALLOWED_DOMAIN = "not_allowed_domain"


class Mode(str, Enum):
    """What the guard does when a check fails.

    BLOCK:  abort the connection and emit an ``error`` log event.
    REPORT: emit a ``warn`` log event and let the connection proceed.
    ALLOW:  skip validation entirely.
    """

    BLOCK = "block"
    REPORT = "report"
    ALLOW = "allow"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a host, IP or policy check.

    Invariant: ``reason`` is set if and only if ``safe`` is False.
    """

    safe: bool
    reason: Optional[BlockReason] = None

    def __post_init__(self) -> None:
        if self.safe and self.reason is not None:
            raise ValueError("a safe ValidationResult cannot carry a reason")
        if not self.safe and self.reason is None:
            raise ValueError("an unsafe ValidationResult requires a reason")

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(safe=True)

    @classmethod
    def blocked(cls, reason: BlockReason) -> "ValidationResult":
        return cls(safe=False, reason=reason)
