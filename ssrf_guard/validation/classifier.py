"""Address classification — IP literal parsing, range labels, domain grammar.

IP parsing and containment are delegated to the standard ``ipaddress``
module. Range labels follow the special-purpose registries (RFC 6890 and
successors); only addresses labelled ``unicast`` are considered public.

IMPORT RULES:
  - `import re2` ONLY — `import re` is PROHIBITED (hostnames are attacker input).
"""

from __future__ import annotations

import ipaddress
import socket
from typing import Union

import re2

from ssrf_guard.constants import MAX_DOMAIN_LENGTH, MAX_LABEL_LENGTH

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

# ─── Special-purpose ranges ──────────────────────────────────────────────────
# First match wins; anything not listed is "unicast".

_IPV4_RANGES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("unspecified", ("0.0.0.0/8",)),
    ("broadcast", ("255.255.255.255/32",)),
    ("multicast", ("224.0.0.0/4",)),
    ("linkLocal", ("169.254.0.0/16",)),
    ("loopback", ("127.0.0.0/8",)),
    ("carrierGradeNat", ("100.64.0.0/10",)),
    ("private", ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")),
    ("as112", ("192.175.48.0/24", "192.31.196.0/24")),
    ("amt", ("192.52.193.0/24",)),
    (
        "reserved",
        (
            "192.0.0.0/24",
            "192.0.2.0/24",
            "192.88.99.0/24",
            "198.18.0.0/15",
            "198.51.100.0/24",
            "203.0.113.0/24",
            "240.0.0.0/4",
        ),
    ),
)

_IPV6_RANGES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("unspecified", ("::/128",)),
    ("linkLocal", ("fe80::/10",)),
    ("multicast", ("ff00::/8",)),
    ("loopback", ("::1/128",)),
    ("uniqueLocal", ("fc00::/7",)),
    ("ipv4Mapped", ("::ffff:0:0/96",)),
    ("discard", ("100::/64",)),
    ("rfc6145", ("::ffff:0:0:0/96",)),
    ("rfc6052", ("64:ff9b::/96",)),
    ("6to4", ("2002::/16",)),
    ("teredo", ("2001::/32",)),
    ("benchmarking", ("2001:2::/48",)),
    ("amt", ("2001:3::/32",)),
    ("as112v6", ("2001:4:112::/48", "2620:4f:8000::/48")),
    ("deprecated", ("2001:10::/28",)),
    ("orchid2", ("2001:20::/28",)),
    ("droneRemoteIdProtocolEntityTags", ("2001:30::/28",)),
    ("reserved", ("2001::/23", "2001:db8::/32")),
)


def _compile_ranges(
    table: tuple[tuple[str, tuple[str, ...]], ...],
) -> tuple[tuple[str, tuple[IPNetwork, ...]], ...]:
    return tuple(
        (label, tuple(ipaddress.ip_network(cidr) for cidr in cidrs))
        for label, cidrs in table
    )


_IPV4_NETWORKS = _compile_ranges(_IPV4_RANGES)
_IPV6_NETWORKS = _compile_ranges(_IPV6_RANGES)

# ─── Patterns ────────────────────────────────────────────────────────────────

# Legacy IPv4 notations (shortened, hex, octal, single integer) as accepted by
# inet_aton. inet_aton itself tolerates trailing garbage after whitespace, so
# the charset is pinned first.
_LEGACY_IPV4 = re2.compile(r"^[0-9a-fx.]+$")

_DOMAIN_CHARS = re2.compile(r"^[a-z0-9._-]+$")
_TLD = re2.compile(r"^(?:xn--)?[a-z0-9]+$")
_ALL_DIGITS = re2.compile(r"^[0-9]+$")
_LABEL = re2.compile(rf"^[a-z0-9_-]{{1,{MAX_LABEL_LENGTH}}}$")
# The label right before the TLD may not contain underscores
_REGISTRABLE_LABEL = re2.compile(rf"^[a-z0-9-]{{1,{MAX_LABEL_LENGTH}}}$")
_DOUBLE_DASH = re2.compile(r"--(?:--)?")


# ─── IP literals ─────────────────────────────────────────────────────────────


def _strip_brackets(value: str) -> str:
    if value.startswith("[") and value.endswith("]"):
        return value[1:-1]
    return value


def parse_ip(value: str) -> IPAddress:
    """Parse an IPv4/IPv6 literal into an ``ipaddress`` object.

    Accepts bracketed IPv6 (``[::1]``), scoped IPv6 (``fe80::1%eth0``) and the
    legacy IPv4 forms ``127.1``, ``0x7f.0.0.1``, ``017700000001`` and
    ``2130706433``, which all normalise to their dotted-quad address.

    Raises:
        ValueError: If ``value`` is not an IP literal.
    """
    candidate = _strip_brackets(value.strip())
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        pass

    lowered = candidate.lower()
    if lowered and _LEGACY_IPV4.match(lowered):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(lowered))
        except OSError:
            pass
    raise ValueError(f"{value!r} is not an IP address")


def is_ip_address(value: str) -> bool:
    """True iff ``value`` parses as an IPv4 or IPv6 literal."""
    if not value:
        return False
    try:
        parse_ip(value)
    except ValueError:
        return False
    return True


def classify_ip(value: Union[str, IPAddress]) -> str:
    """Return the special-purpose range label for an IP, or ``"unicast"``.

    Labels: unspecified, broadcast, multicast, linkLocal, loopback,
    carrierGradeNat, private, reserved, uniqueLocal, ipv4Mapped, rfc6145,
    rfc6052, 6to4, teredo, benchmarking, amt, as112, as112v6, deprecated,
    orchid2, droneRemoteIdProtocolEntityTags, discard, unicast.
    """
    addr = parse_ip(value) if isinstance(value, str) else value
    table = _IPV4_NETWORKS if addr.version == 4 else _IPV6_NETWORKS
    for label, networks in table:
        if any(addr in network for network in networks):
            return label
    return "unicast"


def is_public_unicast(value: Union[str, IPAddress]) -> bool:
    """True iff the address is classified exactly as ``unicast``.

    Only call with values that passed :func:`is_ip_address`.
    """
    return classify_ip(value) == "unicast"


# ─── Domains ─────────────────────────────────────────────────────────────────


def extract_tld(hostname: str) -> str:
    """Return the last dot-separated label, lower-cased.

    Empty input gives ``""``. A bare label such as ``localhost`` is its own
    TLD, so ``deny_tld: [localhost]`` rejects the bare hostname.
    """
    if not hostname:
        return ""
    return hostname.lower().split(".")[-1]


def is_valid_domain(hostname: str) -> bool:
    """Check domain-name grammar (ASCII only, subdomains allowed).

    Rules:
      - at most MAX_DOMAIN_LENGTH characters, charset ``[a-z0-9._-]``
      - one trailing dot (fully-qualified form) is ignored
      - at least two labels
      - TLD alphanumeric, optionally ``xn--`` prefixed, not all digits
      - labels 1 to MAX_LABEL_LENGTH chars, no leading/trailing hyphen
      - the label before the TLD has no underscore, and ``--`` only as ``xn--``
    """
    if not hostname:
        return False
    value = hostname.lower()
    if value.endswith(".") and value != ".":
        value = value[:-1]
    if len(value) > MAX_DOMAIN_LENGTH or not _DOMAIN_CHARS.match(value):
        return False

    labels = value.split(".")
    if len(labels) < 2:
        return False

    tld = labels.pop()
    if not _TLD.match(tld) or _ALL_DIGITS.match(tld):
        return False

    last = len(labels) - 1
    for index, label in enumerate(labels):
        pattern = _REGISTRABLE_LABEL if index == last else _LABEL
        if not pattern.match(label):
            return False
        if label.startswith("-") or label.endswith("-"):
            return False
        if index == last and len(_DOUBLE_DASH.findall(label)) != label.count("xn--"):
            return False
    return True
