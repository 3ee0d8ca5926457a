"""BlockEvent dataclass — the payload handed to the caller's logger callback.

A BlockEvent is built for every block or report decision, passed to
``Options.logger`` and then discarded. ssrf-guard keeps no history of events.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Literal, Optional

from ssrf_guard.models.validation import BlockReason, Mode
from ssrf_guard.utils.ulid import generate_ulid

# ─── Type Aliases ─────────────────────────────────────────────────────────────

LogLevel = Literal["info", "warn", "error"]

#: Signature of the caller-supplied logger: ``logger(level, message, event)``.
LoggerCallback = Callable[[LogLevel, str, Optional["BlockEvent"]], None]


# ─── BlockEvent ───────────────────────────────────────────────────────────────


@dataclass
class BlockEvent:
    """A single block/report decision.

    Field reference:
        url:       The target that was checked (the pre-DNS hostname, or the
                   original hostname for a post-DNS rebinding decision).
        reason:    Why the target was rejected.
        ip:        Resolved address that failed the post-DNS check, if any.
        hostname:  Hostname the caller originally asked for.
        timestamp: Epoch seconds when the decision was made.
        mode:      Mode in force when the decision was made.
        event_id:  ULID for correlating the callback with structured logs.
    """

    url: str
    reason: BlockReason
    ip: Optional[str] = None
    hostname: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    mode: Mode = Mode.BLOCK
    event_id: str = field(default_factory=generate_ulid)

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view with enum members flattened to their string values."""
        data = asdict(self)
        data["reason"] = self.reason.value
        data["mode"] = self.mode.value
        return data
