"""Typed access to the record collections of each entity type."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from ip_console.errors import StorageError, ValidationError
from ip_console.models import ActivityLogEntry, EntityRef, EntityType, EntityView, Identity, format_timestamp, utcnow
from ip_console.store import Store, display_name
from ip_console.timeline import ActivityTimeline, retract

logger = structlog.get_logger()

REQUIRED_FIELDS: dict[EntityType, tuple[str, ...]] = {
    EntityType.DISCLOSURE: ("title",),
    EntityType.PROJECT: ("title",),
    EntityType.AGREEMENT: ("title",),
    EntityType.STARTUP: ("name",),
    EntityType.INVENTOR: ("first_name", "last_name"),
    EntityType.TEAM_MEMBER: ("first_name", "last_name"),
    EntityType.FILING: ("title",),
}

# Stamped by the service, never taken from callers
PROTECTED_FIELDS = frozenset({"id", "created_by", "user_id", "created_at", "updated_at"})

ACTIVE_DISCLOSURE_STAGES = frozenset({"Received", "In Review", "Approved"})


def _check_required(entity_type: EntityType, fields: dict[str, Any], partial: bool = False) -> None:
    for name in REQUIRED_FIELDS[entity_type]:
        if partial and name not in fields:
            continue
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{entity_type.label} {name.replace('_', ' ')} is required")


class RecordService:
    """Create, read, update and delete records of any entity type.

    Mutations are stamped with the current identity and mirrored into the
    activity log of the record they touched.
    """

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

    def create(self, entity_type: EntityType, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a record and return it as stored.

        Raises:
            ValidationError: If a required field is missing or blank
        """
        _check_required(entity_type, fields)

        now = format_timestamp(self.clock())
        row = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
        row.update(created_by=self.identity.id, user_id=self.identity.id, created_at=now, updated_at=now)

        record = self.store.insert(entity_type.collection, row)
        ref = EntityRef(entity_type, str(record["id"]))
        try:
            self.timeline.record_activity(ref, "create", f"Created {entity_type.label.lower()}: {display_name(record)}")
        except StorageError:
            logger.error("Record activity not stored, removing record", ref=str(ref))
            self.store.delete(entity_type.collection, ref.id)
            raise

        logger.info("Record created", ref=str(ref))
        return record

    def list_records(self, entity_type: EntityType, search: str | None = None) -> list[dict[str, Any]]:
        """List records of one type, newest first, optionally filtered by name."""
        records = self.store.select(entity_type.collection, order_by="created_at", descending=True)
        if search and search.strip():
            needle = search.strip().lower()
            records = [record for record in records if needle in display_name(record).lower()]
        logger.debug("Records listed", entity_type=entity_type.value, count=len(records))
        return records

    def get(self, ref: EntityRef) -> dict[str, Any]:
        return self.store.get(ref.type.collection, ref.id)

    def view(self, ref: EntityRef) -> EntityView:
        return self.store.resolve(ref)

    def update(self, ref: EntityRef, fields: dict[str, Any]) -> dict[str, Any]:
        """Update a record and return the server-confirmed row.

        A change of ``status`` or ``stage`` is logged as such; anything else
        as a plain update.

        Raises:
            ValidationError: If a required field is blanked
            NotFoundError: If the record does not exist
        """
        _check_required(ref.type, fields, partial=True)
        changes = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
        if not changes:
            raise ValidationError("No fields to update")

        current = self.store.get(ref.type.collection, ref.id)
        changes["updated_at"] = format_timestamp(self.clock())

        # Logged first so a failed update can take its entries back with it
        logged = self._log_update(ref, current, changes)
        try:
            record = self.store.update(ref.type.collection, ref.id, changes)
        except StorageError:
            retract(self.store, logged)
            raise

        logger.info("Record updated", ref=str(ref), fields=sorted(changes))
        return record

    def _log_update(self, ref: EntityRef, current: dict[str, Any], changes: dict[str, Any]) -> list[ActivityLogEntry]:
        name = display_name({**current, **changes})
        logged: list[ActivityLogEntry] = []
        try:
            for field, action in (("status", "status_change"), ("stage", "stage_change")):
                before = current.get(field)
                if field in changes and changes[field] != before:
                    description = f"{field.title()} of {name} changed from {before or 'none'} to {changes[field]}"
                    metadata = {"from": before, "to": changes[field]}
                    logged.append(self.timeline.record_activity(ref, action, description, metadata))
            if not logged:
                fields_changed = sorted(key for key in changes if key != "updated_at")
                logged.append(self.timeline.record_activity(ref, "update", f"Updated {name}", {"fields": fields_changed}))
        except StorageError:
            retract(self.store, logged)
            raise
        return logged

    def delete(self, ref: EntityRef) -> None:
        """Delete a record.

        Raises:
            NotFoundError: If the record does not exist
        """
        record = self.store.get(ref.type.collection, ref.id)
        entry = self.timeline.record_activity(ref, "delete", f"Deleted {ref.type.label.lower()}: {display_name(record)}")
        try:
            self.store.delete(ref.type.collection, ref.id)
        except StorageError:
            retract(self.store, [entry])
            raise

        logger.info("Record deleted", ref=str(ref))

    def dashboard_stats(self) -> dict[str, int]:
        """Headline counts for the dashboard."""
        disclosures = self.store.select(EntityType.DISCLOSURE.collection)
        return {
            "active_disclosures": sum(1 for d in disclosures if d.get("stage") in ACTIVE_DISCLOSURE_STAGES),
            "active_projects": len(self.store.select(EntityType.PROJECT.collection)),
            "startups": len(self.store.select(EntityType.STARTUP.collection)),
        }
