"""Mode/action resolution for failed checks.

resolve_action() turns a failed ValidationResult into a decision:

  mode   │ logger callback                                     │ abort?
  ───────┼─────────────────────────────────────────────────────┼───────
  block  │ ("error", "SSRF blocked: <reason>", event)          │ True
  report │ ("warn", "SSRF detected (report mode): <reason>", …) │ False
  allow  │ — (the interceptor never calls in allow mode)       │ False

INVARIANT:
  - The caller's logger is invoked at most once per call.
  - An exception from the caller's logger never changes the decision.
"""

from __future__ import annotations

from typing import Optional

from ssrf_guard.config import Options
from ssrf_guard.models.events import BlockEvent, LogLevel
from ssrf_guard.models.validation import BlockReason, Mode
from ssrf_guard.utils.logger import get_logger

logger = get_logger(__name__)


def _emit(options: Options, level: LogLevel, message: str, event: BlockEvent) -> None:
    if options.logger is None:
        return
    try:
        options.logger(level, message, event)
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Logger callback raised — decision unaffected",
            error=str(exc),
            error_type=type(exc).__name__,
            event_id=event.event_id,
        )


def resolve_action(
    options: Options,
    target: str,
    reason: BlockReason,
    resolved_ip: Optional[str] = None,
    original_hostname: Optional[str] = None,
) -> bool:
    """Decide whether a failed check aborts the connection.

    Args:
        options:           Guard options (mode + logger).
        target:            Host that failed the check.
        reason:            Why it failed.
        resolved_ip:       Resolved address, for post-DNS decisions.
        original_hostname: Hostname the caller asked for.

    Returns:
        True if the connection must be aborted.
    """
    if options.mode is Mode.ALLOW:
        return False

    event = BlockEvent(
        url=target,
        reason=reason,
        ip=resolved_ip,
        hostname=original_hostname,
        mode=options.mode,
    )

    if options.mode is Mode.REPORT:
        logger.warning(
            "SSRF detected (report mode)",
            reason=reason.value,
            target=target,
            ip=resolved_ip,
            event_id=event.event_id,
        )
        _emit(options, "warn", f"SSRF detected (report mode): {reason.value}", event)
        return False

    logger.error(
        "SSRF blocked",
        reason=reason.value,
        target=target,
        ip=resolved_ip,
        event_id=event.event_id,
    )
    _emit(options, "error", f"SSRF blocked: {reason.value}", event)
    return True
