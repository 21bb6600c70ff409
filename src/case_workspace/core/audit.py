"""Activity journal for case-workspace.

The journal is derived data: a human-readable list of recent changes,
newest first, bounded to the most recent entries. Entries pushed past the
bound are discarded.
"""

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from case_workspace.core.models import ActivityItem, ActivityType

ACTIVITY_LIMIT = 25


def generate_id(prefix: str) -> str:
    """Return a fresh record id such as ``case-1b9d6bcd-...``."""
    return f"{prefix}-{uuid.uuid4()}"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class OperationContext:
    """Clock reading and id source for one engine operation.

    Every timestamp written by an operation uses the same reading.
    """

    timestamp: str = field(default_factory=utc_now_iso)
    new_id: Callable[[str], str] = generate_id

    @property
    def today(self) -> str:
        return self.timestamp[:10]


def build_activity(
    label: str,
    kind: ActivityType,
    related_case_ids: Iterable[str],
    context: OperationContext,
) -> ActivityItem:
    """Build one journal entry stamped with the operation's timestamp.

    Args:
        label: Human-readable description of the change.
        kind: Event kind.
        related_case_ids: Cases touched by the change; empty for global entries.
        context: Operation context supplying the id and timestamp.

    Returns:
        The new ActivityItem.
    """
    return ActivityItem(
        id=context.new_id("activity"),
        type=kind,
        label=label,
        related_case_ids=tuple(dict.fromkeys(related_case_ids)),
        timestamp=context.timestamp,
    )


def prune_activity(
    activity: Iterable[ActivityItem], limit: int = ACTIVITY_LIMIT
) -> tuple[ActivityItem, ...]:
    """Sort entries newest-timestamp first and keep at most limit of them.

    The sort is stable, so entries sharing a timestamp keep their order.
    """
    ordered = sorted(activity, key=lambda item: item.timestamp, reverse=True)
    return tuple(ordered[:limit])


def append_activity(
    activity: tuple[ActivityItem, ...],
    item: ActivityItem,
    limit: int = ACTIVITY_LIMIT,
) -> tuple[ActivityItem, ...]:
    """Prepend item to the journal, then sort and truncate."""
    return prune_activity((item, *activity), limit)
