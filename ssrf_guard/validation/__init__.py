"""ssrf-guard validation — address classification, policy and host checks.

Public API:
    validate_host          — unified pre/post-DNS decision
    evaluate_policy        — allow/deny domain policy
    is_cloud_metadata_host — metadata endpoint lookup
    matches_domain_pattern — single pattern match
    extract_tld            — last label of a hostname
"""

from ssrf_guard.validation.classifier import (
    classify_ip,
    extract_tld,
    is_ip_address,
    is_public_unicast,
    is_valid_domain,
)
from ssrf_guard.validation.host import is_cloud_metadata_host, validate_host
from ssrf_guard.validation.policy import evaluate_policy, matches_domain_pattern

__all__ = [
    "classify_ip",
    "evaluate_policy",
    "extract_tld",
    "is_cloud_metadata_host",
    "is_ip_address",
    "is_public_unicast",
    "is_valid_domain",
    "matches_domain_pattern",
    "validate_host",
]
