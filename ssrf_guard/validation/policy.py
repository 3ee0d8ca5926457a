"""Domain policy evaluation — allowlist, denylist and denied TLDs.

evaluate_policy() is the only function the host validator calls. Precedence
is fixed and short-circuits top to bottom:

  1. no policy / all lists empty      → safe
  2. allow_domains non-empty          → safe on match, else not_allowed_domain
                                        (deny lists are NOT consulted)
  3. deny_domains match               → denied_domain
  4. TLD in deny_tld (case-folded)    → denied_tld
  5. otherwise                        → safe
"""

from __future__ import annotations

from typing import Iterable, Optional

from ssrf_guard.config import PolicyOptions
from ssrf_guard.models.validation import BlockReason, ValidationResult
from ssrf_guard.validation.classifier import extract_tld

_WILDCARD_PREFIX = "*."


def _normalise(name: str) -> str:
    name = name.strip().lower()
    if name.endswith(".") and name != ".":
        name = name[:-1]
    return name


def matches_domain_pattern(hostname: str, pattern: str) -> bool:
    """Check ``hostname`` against one domain pattern, case-insensitively.

    - ``example.com``    matches ``example.com`` and every ``*.example.com``
    - ``*.example.com``  matches the same set, the wildcard only makes the
                         subdomain intent explicit
    - a single trailing dot on either side is ignored
    """
    host = _normalise(hostname)
    target = _normalise(pattern)
    if not host or not target:
        return False

    if host == target:
        return True

    if target.startswith(_WILDCARD_PREFIX):
        base = target[len(_WILDCARD_PREFIX):]
        return host == base or host.endswith("." + base)

    return host.endswith("." + target)


def _matches_any(hostname: str, patterns: Iterable[str]) -> bool:
    return any(matches_domain_pattern(hostname, pattern) for pattern in patterns)


def evaluate_policy(hostname: str, policy: Optional[PolicyOptions] = None) -> ValidationResult:
    """Evaluate ``hostname`` against the allow/deny policy.

    Returns:
        ValidationResult.ok() when the hostname passes, otherwise a blocked
        result with NOT_ALLOWED_DOMAIN, DENIED_DOMAIN or DENIED_TLD.
    """
    if policy is None or policy.is_empty:
        return ValidationResult.ok()

    # ── Allowlist is exclusive and authoritative ───────────────────────────
    if policy.allow_domains:
        if _matches_any(hostname, policy.allow_domains):
            return ValidationResult.ok()
        return ValidationResult.blocked(BlockReason.NOT_ALLOWED_DOMAIN)

    if policy.deny_domains and _matches_any(hostname, policy.deny_domains):
        return ValidationResult.blocked(BlockReason.DENIED_DOMAIN)

    if policy.deny_tld and extract_tld(_normalise(hostname)) in policy.deny_tld:
        return ValidationResult.blocked(BlockReason.DENIED_TLD)

    return ValidationResult.ok()
