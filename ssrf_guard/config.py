"""Options for guarded connection factories, and YAML config loading.

Options is the fixed configuration bundle passed to create_guarded_factory().
All fields have safe defaults — a guard built with ``Options()`` blocks
private IPs, cloud metadata endpoints and invalid domains, and re-checks every
resolved address.

Malformed option values are coerced, or replaced by the blocking default with
a warning. Only a malformed config file raises ConfigError.

Config search order for load_options():
  1. `config_path` argument (if provided — for testing or explicit override)
  2. SSRF_GUARD_CONFIG environment variable (if set)
  3. `.ssrf-guard/config.yaml` (working directory)
  4. `~/.ssrf-guard/config.yaml` (home directory)

Environment variable overrides:
  SSRF_GUARD_MODE — overrides ``mode`` (takes precedence over config file value)
  SSRF_GUARD_CONFIG — sets an explicit config file path to try first
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Union

import yaml

from ssrf_guard.exceptions import ConfigError
from ssrf_guard.models.events import LoggerCallback
from ssrf_guard.models.validation import Mode
from ssrf_guard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────


SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (SSRF_GUARD_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".ssrf-guard/config.yaml",
    os.path.expanduser("~/.ssrf-guard/config.yaml"),
]


# ─── Coercion helpers ────────────────────────────────────────────────────────


def _as_tuple(values: Optional[Iterable[str]]) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(str(v) for v in values)


def _as_lower_set(values: Optional[Iterable[str]]) -> frozenset[str]:
    return frozenset(v.lower() for v in _as_tuple(values))


def _coerce_mode(value: Union[Mode, str, None]) -> Mode:
    if isinstance(value, Mode):
        return value
    if value is None:
        return Mode.BLOCK
    try:
        return Mode(str(value).strip().lower())
    except ValueError:
        logger.warning(
            "Unknown mode — falling back to block",
            mode=value,
            supported=[m.value for m in Mode],
        )
        return Mode.BLOCK


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PolicyOptions:
    """Domain allow/deny policy.

    allow_domains: exclusive allowlist — when non-empty, only matching
                   hostnames pass and the deny lists are not consulted.
    deny_domains:  hostnames to reject (plain patterns also match subdomains,
                   ``*.base`` matches ``base`` and its subdomains).
    deny_tld:      top-level labels to reject, compared case-insensitively.
    """

    allow_domains: tuple[str, ...] = ()
    deny_domains: tuple[str, ...] = ()
    deny_tld: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "allow_domains", _as_tuple(self.allow_domains))
        object.__setattr__(self, "deny_domains", _as_tuple(self.deny_domains))
        object.__setattr__(self, "deny_tld", _as_lower_set(self.deny_tld))

    @property
    def is_empty(self) -> bool:
        return not (self.allow_domains or self.deny_domains or self.deny_tld)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PolicyOptions":
        """Build a policy from a mapping; unknown keys are silently ignored."""
        return cls(
            allow_domains=raw.get("allow_domains") or (),
            deny_domains=raw.get("deny_domains") or (),
            deny_tld=raw.get("deny_tld") or (),
        )


@dataclass(frozen=True)
class Options:
    """Configuration for one guarded connection factory.

    protocol_hint:        selects the TLS factory when it starts with "https".
    metadata_hosts:       extra metadata hosts, added to CLOUD_METADATA_HOSTS.
    mode:                 block (default) | report | allow.
    policy:               domain allow/deny policy (see PolicyOptions).
    block_cloud_metadata: reject metadata endpoints (default True).
    detect_dns_rebinding: re-check resolved addresses (default True).
    logger:               ``logger(level, message, event)`` callback.
    """

    protocol_hint: Optional[str] = None
    metadata_hosts: frozenset[str] = frozenset()
    mode: Mode = Mode.BLOCK
    policy: Optional[PolicyOptions] = None
    block_cloud_metadata: bool = True
    detect_dns_rebinding: bool = True
    logger: Optional[LoggerCallback] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata_hosts", _as_lower_set(self.metadata_hosts))
        object.__setattr__(self, "mode", _coerce_mode(self.mode))
        if isinstance(self.policy, Mapping):
            object.__setattr__(self, "policy", PolicyOptions.from_dict(self.policy))

    @classmethod
    def from_dict(
        cls,
        raw: Mapping[str, Any],
        logger: Optional[LoggerCallback] = None,
    ) -> "Options":
        """Construct Options from a parsed mapping.

        Merges supplied values onto defaults; unknown keys are silently ignored.
        """
        policy_raw = raw.get("policy")
        policy = PolicyOptions.from_dict(policy_raw) if isinstance(policy_raw, Mapping) else None
        return cls(
            protocol_hint=raw.get("protocol_hint"),
            metadata_hosts=raw.get("metadata_hosts") or (),
            mode=raw.get("mode", Mode.BLOCK),
            policy=policy,
            block_cloud_metadata=bool(raw.get("block_cloud_metadata", True)),
            detect_dns_rebinding=bool(raw.get("detect_dns_rebinding", True)),
            logger=logger,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_options(
    config_path: Optional[str] = None,
    logger_callback: Optional[LoggerCallback] = None,
) -> Options:
    """Load guard options from YAML.

    If no file is found at any search path, returns default Options (not an
    error). ``SSRF_GUARD_MODE`` is applied afterwards in either case.

    Args:
        config_path:     Explicit config file to try first.
        logger_callback: Callback stored as ``Options.logger`` (callables
                         cannot come from YAML).

    Raises:
        ConfigError: On YAML parse error, unreadable file, non-mapping
                     document, missing ``version`` field or unsupported version.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("SSRF_GUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.debug("No config file found — using defaults", searched=search_paths)
        return _apply_env_overrides(Options(logger=logger_callback))

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {found_path}: {exc}", path=found_path) from exc
    except OSError as exc:
        raise ConfigError(f"Could not read {found_path}: {exc}", path=found_path) from exc

    if not isinstance(raw, dict):
        if raw is None:
            msg = (
                f"{found_path} is missing the required 'version' field. "
                "Add 'version: 1' to the top of your config file."
            )
        else:
            msg = f"{found_path} is not a valid YAML mapping."
        raise ConfigError(msg, path=found_path)

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        raise ConfigError(
            f"{found_path} is missing the required 'version' field. "
            "Add 'version: 1' to the top of your config file.",
            path=found_path,
        )
    if version not in SUPPORTED_VERSIONS:
        raise ConfigError(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}.",
            path=found_path,
        )

    options = _apply_env_overrides(Options.from_dict(raw, logger=logger_callback))

    if options.mode is Mode.ALLOW:
        logger.warning(
            "ssrf-guard is configured in allow mode — no outbound connection is validated",
            path=found_path,
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=version,
        mode=options.mode.value,
    )
    return options


def _apply_env_overrides(options: Options) -> Options:
    """Return ``options`` with environment variable overrides applied.

    Currently handles:
      SSRF_GUARD_MODE — overrides ``mode`` (unknown values fall back to block)
    """
    env_mode = os.environ.get("SSRF_GUARD_MODE")
    if env_mode:
        return replace(options, mode=_coerce_mode(env_mode))
    return options
