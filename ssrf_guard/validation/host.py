"""Host validation — one decision for a hostname or IP literal.

validate_host() is called twice per connection: once with the hostname the
caller asked for (pre-DNS) and once per resolved address (post-DNS). It is a
pure function of its arguments.

Order of checks (first failure wins):
  1. cloud metadata host (if block_cloud_metadata)  → cloud_metadata
  2. domain names: policy evaluation               → policy reason
  3. IP literals: anything but public unicast      → private_ip
  4. domain names: grammar                         → invalid_domain
"""

from __future__ import annotations

from typing import Iterable, Optional

from ssrf_guard.config import Options
from ssrf_guard.constants import CLOUD_METADATA_HOSTS
from ssrf_guard.models.validation import BlockReason, ValidationResult
from ssrf_guard.validation.classifier import (
    is_ip_address,
    is_public_unicast,
    is_valid_domain,
)
from ssrf_guard.validation.policy import evaluate_policy


def _normalise_host(hostname: str) -> str:
    host = hostname.strip().lower()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    # Fully-qualified form: "metadata.google.internal." names the same host
    if host.endswith(".") and host != ".":
        host = host[:-1]
    return host


def is_cloud_metadata_host(
    hostname: str,
    custom_hosts: Optional[Iterable[str]] = None,
) -> bool:
    """True if ``hostname`` is a known metadata endpoint or one of ``custom_hosts``."""
    host = _normalise_host(hostname)
    if host in CLOUD_METADATA_HOSTS:
        return True
    if custom_hosts:
        return host in {_normalise_host(h) for h in custom_hosts}
    return False


def validate_host(hostname: str, options: Optional[Options] = None) -> ValidationResult:
    """Validate a hostname or IP literal against ``options``.

    Args:
        hostname: Domain name (pre-DNS) or IP literal (pre- or post-DNS).
        options:  Guard options; ``None`` means defaults.

    Returns:
        ValidationResult with the first failing reason, or ok().
    """
    options = options if options is not None else Options()

    if options.block_cloud_metadata and is_cloud_metadata_host(
        hostname, options.metadata_hosts
    ):
        return ValidationResult.blocked(BlockReason.CLOUD_METADATA)

    # Policy applies to names only; raw IP targets are never policy-matched
    if is_ip_address(hostname):
        if not is_public_unicast(hostname):
            return ValidationResult.blocked(BlockReason.PRIVATE_IP)
        return ValidationResult.ok()

    policy_result = evaluate_policy(hostname, options.policy)
    if not policy_result.safe:
        return policy_result

    if not is_valid_domain(hostname):
        return ValidationResult.blocked(BlockReason.INVALID_DOMAIN)

    return ValidationResult.ok()
