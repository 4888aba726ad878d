"""
qualifier/utils.py — Shared helpers.

Provides:
  - utcnow()          : naive UTC timestamp (what the DB layer stores)
  - round_half_up()   : rounding that matches how scores were always shown
  - is_empty_value()  : what counts as "no answer" inside the flow
  - merge_responses() : initial + follow-up merge, follow-up wins
"""

import math
from datetime import datetime, timezone
from typing import Any, Mapping


def utcnow() -> datetime:
    """Current UTC time without tzinfo, comparable with values read back from SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def round_half_up(value: float) -> int:
    """Round .5 away from zero (Python's round() would give banker's rounding)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def is_empty_value(value: Any) -> bool:
    return value is None or value == "" or value == []


def merge_responses(
    initial: Mapping[str, Any] | None,
    follow_up: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Merge both response maps; on key collision the follow-up answer wins."""
    return {**(initial or {}), **(follow_up or {})}
