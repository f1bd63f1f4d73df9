"""Append-only activity log and its timeline presentation."""

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

import structlog

from ip_console.errors import ValidationError
from ip_console.models import (
    ACTIONS,
    ACTIVITY_LOGS,
    ActivityLogEntry,
    EntityRef,
    Identity,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from ip_console.store import Store

logger = structlog.get_logger()


@dataclass
class TimelineGroup:
    """Entries sharing one local calendar date."""

    day: date
    label: str
    entries: list[ActivityLogEntry] = field(default_factory=list)


class ActivityTimeline:
    """Records actions against entities and reads them back newest first.

    The log is append-only: entries can be recorded and read, never edited
    or removed.
    """

    def __init__(self, store: Store, identity: Identity, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.identity = identity
        self.clock = clock

    def record_activity(
        self,
        ref: EntityRef,
        action: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLogEntry:
        """Append one entry to the activity log.

        Args:
            ref: Entity the action was taken against
            action: One of the known activity actions
            description: Human-readable summary
            metadata: Optional structured payload

        Returns:
            The stored entry

        Raises:
            ValidationError: If the action is unknown
            StorageError: If the store could not commit the entry
        """
        if action not in ACTIONS:
            raise ValidationError(f"Unknown activity action: '{action}'")

        row = self.store.insert(
            ACTIVITY_LOGS,
            {
                "entity_type": ref.type.value,
                "entity_id": ref.id,
                "action": action,
                "description": description,
                "metadata": metadata or {},
                "created_by": self.identity.id,
                "user_id": self.identity.id,
                "created_at": format_timestamp(self.clock()),
            },
        )
        entry = ActivityLogEntry.from_row(row)
        logger.info("Activity recorded", ref=str(ref), action=action, entry_id=entry.id)
        return entry

    def get_timeline(self, ref: EntityRef) -> list[ActivityLogEntry]:
        """Return the entity's entries, most recent first."""
        rows = self.store.select(
            ACTIVITY_LOGS,
            filters={"entity_type": ref.type.value, "entity_id": ref.id},
            order_by="created_at",
            descending=True,
        )
        entries = [ActivityLogEntry.from_row(row) for row in rows]
        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        logger.debug("Timeline fetched", ref=str(ref), count=len(entries))
        return entries


def retract(store: Store, entries: Iterable[ActivityLogEntry]) -> None:
    """Remove entries logged for a change that then failed to commit.

    Only for rolling back within the call that wrote them; committed history
    is never edited.
    """
    for entry in entries:
        store.delete(ACTIVITY_LOGS, entry.id)
        logger.warning("Activity retracted", ref=str(entry.ref), action=entry.action, entry_id=entry.id)


def filter_by_action(entries: Iterable[ActivityLogEntry], action: str | None = None) -> list[ActivityLogEntry]:
    """Keep entries with the given action; ``None`` or ``"all"`` keeps everything."""
    if action is None or action == "all":
        return list(entries)
    return [entry for entry in entries if entry.action == action]


def action_types(entries: Iterable[ActivityLogEntry]) -> list[str]:
    return sorted({entry.action for entry in entries})


def format_absolute_date(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def date_label(day: date, now: datetime) -> str:
    """Label a group date relative to ``now``'s local date."""
    today = now.date()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def group_by_date(entries: Iterable[ActivityLogEntry], now: datetime) -> list[TimelineGroup]:
    """Partition entries by local calendar date, newest date first.

    The local date of an entry is its ``created_at`` in ``now``'s timezone.
    Within a group the incoming order is preserved.
    """
    now = parse_timestamp(now)
    groups: dict[date, TimelineGroup] = {}

    for entry in entries:
        day = entry.created_at.astimezone(now.tzinfo).date()
        if day not in groups:
            groups[day] = TimelineGroup(day=day, label=date_label(day, now))
        groups[day].entries.append(entry)

    return [groups[day] for day in sorted(groups, reverse=True)]


def format_time_ago(timestamp: datetime, now: datetime) -> str:
    """Render a timestamp relative to ``now``."""
    now = parse_timestamp(now)
    timestamp = parse_timestamp(timestamp)
    seconds = math.floor((now - timestamp).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    if seconds < 604800:
        return f"{seconds // 86400} days ago"
    return format_absolute_date(timestamp.astimezone(now.tzinfo))
