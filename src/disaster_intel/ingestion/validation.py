"""
Record validation.

Shared predicate enforcing the DisasterEvent invariants. It is the final gate
before a record enters the merger and is re-checked by the merger itself,
since records may arrive from code paths that skipped a check.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from disaster_intel.schemas.event import DisasterCategory, DisasterEvent, Severity

logger = logging.getLogger(__name__)

# Forward-dated records are tolerated up to this horizon (clock skew, planned
# declarations in the spreadsheet export).
FUTURE_TOLERANCE = timedelta(days=7)

_CATEGORY_VALUES = frozenset(c.value for c in DisasterCategory)
_SEVERITY_VALUES = frozenset(s.value for s in Severity)


def _enum_member_ok(value, allowed: frozenset) -> bool:
    raw = value.value if hasattr(value, "value") else value
    return isinstance(raw, str) and raw in allowed


def _coordinate_ok(value, limit: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and -limit <= value <= limit


def validate_event(
    event: DisasterEvent,
    now: Optional[datetime] = None,
    future_tolerance: timedelta = FUTURE_TOLERANCE,
) -> Tuple[bool, List[str]]:
    """
    Check a normalized record against the schema invariants.

    Args:
        event: Record to check
        now: Processing time; defaults to the current UTC time
        future_tolerance: How far past ``now`` a timestamp may lie

    Returns:
        Tuple of (is_valid, validation_messages)
    """
    messages: List[str] = []

    if not isinstance(event.event_id, str) or not event.event_id.strip():
        messages.append("event_id is empty")

    if not _enum_member_ok(event.category, _CATEGORY_VALUES):
        messages.append(f"category '{event.category}' is not a known category")

    if not _coordinate_ok(event.latitude, 90.0):
        messages.append(f"latitude {event.latitude!r} outside [-90, 90]")
    if not _coordinate_ok(event.longitude, 180.0):
        messages.append(f"longitude {event.longitude!r} outside [-180, 180]")

    occurred_at = event.occurred_at
    if not isinstance(occurred_at, datetime):
        messages.append(f"occurred_at {occurred_at!r} is not a timestamp")
    else:
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=timezone.utc)
        reference = now or datetime.now(timezone.utc)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        if occurred_at > reference + future_tolerance:
            messages.append(
                f"occurred_at {occurred_at.isoformat()} is more than "
                f"{future_tolerance.days} days in the future"
            )

    if not _enum_member_ok(event.severity, _SEVERITY_VALUES):
        messages.append(f"severity '{event.severity}' is not a known severity")

    return (not messages), messages


def is_valid(
    event: DisasterEvent,
    now: Optional[datetime] = None,
    future_tolerance: timedelta = FUTURE_TOLERANCE,
) -> bool:
    """Return True when the record satisfies every schema invariant."""
    valid, _ = validate_event(event, now=now, future_tolerance=future_tolerance)
    return valid


def clean_events(
    events: Iterable[DisasterEvent],
    now: Optional[datetime] = None,
    future_tolerance: timedelta = FUTURE_TOLERANCE,
) -> List[DisasterEvent]:
    """
    Filter out invalid records, logging each rejection.

    Returns:
        New list holding only the valid records, in input order
    """
    cleaned = []
    for event in events:
        valid, messages = validate_event(
            event, now=now, future_tolerance=future_tolerance
        )
        if not valid:
            logger.warning(f"Invalid event filtered out: {event.event_id}: {messages}")
            continue
        cleaned.append(event)
    return cleaned
