"""Per-entity checklists of completable tasks."""

import math
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Literal

import structlog

from ip_console.errors import StorageError, ValidationError
from ip_console.models import (
    CHECKLIST_ITEMS,
    ChecklistItem,
    EntityRef,
    Identity,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from ip_console.store import Store
from ip_console.timeline import ActivityTimeline, retract

logger = structlog.get_logger()

DueDateStatus = Literal["overdue", "today", "soon", "upcoming"]

EDITABLE_FIELDS = frozenset({"title", "description", "due_date", "is_completed"})

SECONDS_PER_DAY = 86400


def days_until(due: datetime | str, now: datetime) -> int:
    """Whole days from ``now`` to ``due``, rounded up."""
    delta = parse_timestamp(due) - parse_timestamp(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def completion_rate(items: Iterable[ChecklistItem]) -> int:
    """Percentage of completed items, 0 for an empty checklist."""
    items = list(items)
    if not items:
        return 0
    completed = sum(1 for item in items if item.is_completed)
    # Half-up, so 12.5% shows as 13%
    return math.floor(100 * completed / len(items) + 0.5)


def due_date_status(item: ChecklistItem, now: datetime) -> DueDateStatus | None:
    """Classify an item's due date relative to ``now``; ``None`` without a due date."""
    if item.due_date is None:
        return None

    diff_days = days_until(item.due_date, now)
    if diff_days < 0:
        return "overdue"
    if diff_days == 0:
        return "today"
    if diff_days <= 3:
        return "soon"
    return "upcoming"


def split_items(items: Iterable[ChecklistItem]) -> tuple[list[ChecklistItem], list[ChecklistItem]]:
    """Partition items into (pending, completed), keeping their order."""
    pending: list[ChecklistItem] = []
    completed: list[ChecklistItem] = []
    for item in items:
        (completed if item.is_completed else pending).append(item)
    return pending, completed


def _normalize_due_date(value: Any) -> str | None:
    if value is None or value == "":
        return None
    try:
        return format_timestamp(parse_timestamp(value))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid due date: '{value}'") from e


class Checklist:
    """Checklist items attached to entities."""

    def __init__(
        self,
        store: Store,
        identity: Identity,
        timeline: ActivityTimeline | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.identity = identity
        self.timeline = timeline or ActivityTimeline(store, identity, clock)
        self.clock = clock

    def list_items(self, ref: EntityRef) -> list[ChecklistItem]:
        """Return the entity's items, newest first."""
        rows = self.store.select(
            CHECKLIST_ITEMS,
            filters={"entity_type": ref.type.value, "entity_id": ref.id},
            order_by="created_at",
            descending=True,
        )
        return [ChecklistItem.from_row(row) for row in rows]

    def create_item(
        self,
        ref: EntityRef,
        title: str,
        description: str | None = None,
        due_date: datetime | str | None = None,
    ) -> ChecklistItem:
        """Add an item to an entity's checklist.

        Raises:
            ValidationError: If the title is empty or the due date is malformed
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Checklist item title is required")

        now = format_timestamp(self.clock())
        row = self.store.insert(
            CHECKLIST_ITEMS,
            {
                "entity_type": ref.type.value,
                "entity_id": ref.id,
                "title": title,
                "description": (description or "").strip() or None,
                "is_completed": False,
                "due_date": _normalize_due_date(due_date),
                "created_by": self.identity.id,
                "user_id": self.identity.id,
                "created_at": now,
                "updated_at": now,
            },
        )
        item = ChecklistItem.from_row(row)
        try:
            self.timeline.record_activity(
                ref, "checklist_updated", f"Added checklist item: {title}", {"item_id": item.id}
            )
        except StorageError:
            logger.error("Checklist activity not stored, removing item", item_id=item.id)
            self.store.delete(CHECKLIST_ITEMS, item.id)
            raise

        logger.info("Checklist item created", ref=str(ref), item_id=item.id)
        return item

    def update_item(self, item_id: str, fields: dict[str, Any]) -> ChecklistItem:
        """Merge fields into an item and return the stored result.

        Completion is toggled through this same path by passing
        ``is_completed``.

        Raises:
            ValidationError: If a field is not editable or the title is emptied
            NotFoundError: If the item does not exist
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Checklist fields cannot be updated: {', '.join(sorted(unknown))}")

        changes = dict(fields)
        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                raise ValidationError("Checklist item title is required")
        if "description" in changes:
            changes["description"] = (changes["description"] or "").strip() or None
        if "due_date" in changes:
            changes["due_date"] = _normalize_due_date(changes["due_date"])
        if "is_completed" in changes:
            changes["is_completed"] = bool(changes["is_completed"])
        changes["updated_at"] = format_timestamp(self.clock())

        current = ChecklistItem.from_row(self.store.get(CHECKLIST_ITEMS, item_id))
        title = changes.get("title", current.title)
        if set(fields) == {"is_completed"}:
            description = f"{'Completed' if changes['is_completed'] else 'Reopened'} checklist item: {title}"
        else:
            description = f"Updated checklist item: {title}"

        # Logged first so a failed update can take its entry back with it
        entry = self.timeline.record_activity(current.ref, "checklist_updated", description, {"item_id": item_id})
        try:
            item = ChecklistItem.from_row(self.store.update(CHECKLIST_ITEMS, item_id, changes))
        except StorageError:
            retract(self.store, [entry])
            raise

        logger.info("Checklist item updated", item_id=item_id, fields=sorted(fields))
        return item

    def delete_item(self, item_id: str) -> None:
        """Remove an item.

        Raises:
            NotFoundError: If the item does not exist
        """
        item = ChecklistItem.from_row(self.store.get(CHECKLIST_ITEMS, item_id))
        entry = self.timeline.record_activity(
            item.ref, "checklist_updated", f"Removed checklist item: {item.title}", {"item_id": item.id}
        )
        try:
            self.store.delete(CHECKLIST_ITEMS, item_id)
        except StorageError:
            retract(self.store, [entry])
            raise

        logger.info("Checklist item deleted", item_id=item_id)
