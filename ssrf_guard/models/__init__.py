"""ssrf-guard models package.

Defines the shared data contracts used by the validators and the interceptor:

  - validation.py — ValidationResult, BlockReason, Mode
  - events.py     — BlockEvent and the logger callback type
"""

from ssrf_guard.models.events import BlockEvent, LoggerCallback, LogLevel
from ssrf_guard.models.validation import BlockReason, Mode, ValidationResult

__all__ = [
    "BlockEvent",
    "BlockReason",
    "LogLevel",
    "LoggerCallback",
    "Mode",
    "ValidationResult",
]
