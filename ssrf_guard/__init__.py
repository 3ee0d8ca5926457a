"""ssrf-guard — SSRF protection for outbound connections.

Validates the requested host before a connection is opened and every resolved
address after DNS resolution, blocking private IPs, cloud metadata endpoints,
policy-denied domains and DNS rebinding.

Public API:
    create_guarded_factory(url_or_protocol_hint, options) — entry point
    guard_factory(factory, options)                       — wrap an existing factory
    validate_host / evaluate_policy / is_cloud_metadata_host /
    matches_domain_pattern / extract_tld                  — standalone checks
"""

from ssrf_guard.config import Options, PolicyOptions, load_options
from ssrf_guard.exceptions import ConfigError, SSRFBlockedError, SSRFGuardError
from ssrf_guard.guard import (
    Connection,
    ConnectionFactory,
    ConnectionParams,
    GuardedConnectionFactory,
    TCPConnectionFactory,
    TLSConnectionFactory,
    create_guarded_factory,
    guard_factory,
    resolve_action,
)
from ssrf_guard.models import BlockEvent, BlockReason, Mode, ValidationResult
from ssrf_guard.validation import (
    evaluate_policy,
    extract_tld,
    is_cloud_metadata_host,
    matches_domain_pattern,
    validate_host,
)

__version__ = "1.0.0"

__all__ = [
    "BlockEvent",
    "BlockReason",
    "ConfigError",
    "Connection",
    "ConnectionFactory",
    "ConnectionParams",
    "GuardedConnectionFactory",
    "Mode",
    "Options",
    "PolicyOptions",
    "SSRFBlockedError",
    "SSRFGuardError",
    "TCPConnectionFactory",
    "TLSConnectionFactory",
    "ValidationResult",
    "create_guarded_factory",
    "evaluate_policy",
    "extract_tld",
    "guard_factory",
    "is_cloud_metadata_host",
    "load_options",
    "matches_domain_pattern",
    "resolve_action",
    "validate_host",
]
