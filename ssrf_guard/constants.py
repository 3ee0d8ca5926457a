"""Shared constants for ssrf-guard.

Static tables and numeric limits used across modules are defined here.
No magic values in other modules — import from here.
"""

# ─── Cloud Metadata Endpoints ────────────────────────────────────────────────

# Well-known instance metadata hostnames and addresses. Checked before any
# policy or IP classification; callers can extend the set per guarded factory
# via Options.metadata_hosts (the union is computed at check time, this table
# is never mutated).
CLOUD_METADATA_HOSTS: frozenset[str] = frozenset(
    {
        # AWS EC2 IMDS (IPv4 + IPv6), Route 53 resolver, ECS task metadata
        "169.254.169.254",
        "fd00:ec2::254",
        "169.254.169.253",
        "169.254.170.2",
        "instance-data",
        "instance-data.ec2.internal",
        # GCP
        "metadata.google.internal",
        "metadata.goog",
        "metadata",
        # Azure IMDS shares 169.254.169.254; WireServer
        "168.63.129.16",
        # Oracle Cloud
        "192.0.0.192",
        # Alibaba Cloud
        "100.100.100.200",
        # Kubernetes API server from inside a pod
        "kubernetes.default",
        "kubernetes.default.svc",
        "kubernetes.default.svc.cluster.local",
        # Generic link-local base address
        "169.254.0.0",
    }
)

# ─── Domain Grammar Limits ───────────────────────────────────────────────────

# Maximum length of a full domain name (RFC 1035 §2.3.4, without trailing dot).
MAX_DOMAIN_LENGTH: int = 253

# Maximum length of a single DNS label.
MAX_LABEL_LENGTH: int = 63

# ─── Connection Defaults ─────────────────────────────────────────────────────

# Host used by the underlying connection factories when params carry none.
DEFAULT_CONNECT_HOST: str = "localhost"

# Protocol hint prefix that selects the TLS connection factory.
HTTPS_PREFIX: str = "https"
