"""ULID generation utility for ssrf-guard.

Provides a single `generate_ulid()` function that returns a 26-character ULID
(Universally Unique Lexicographically Sortable Identifier) used as:
  - BlockEvent.event_id (handed to the caller's logger callback)
  - Correlation key in structured log entries for the same decision

Uses the `python-ulid` library (see pyproject.toml) — do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: A 26-character ULID string, Crockford Base32 (``[0-9A-HJKMNP-TV-Z]``).

    Example::

        event_id = generate_ulid()
        assert len(event_id) == 26
    """
    return str(ULID())
