"""Data models for the IP console."""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from ip_console.errors import ValidationError


class EntityType(str, Enum):
    """Closed set of record types that can be linked, logged and checklisted."""

    DISCLOSURE = "disclosure"
    PROJECT = "project"
    AGREEMENT = "agreement"
    STARTUP = "startup"
    INVENTOR = "inventor"
    TEAM_MEMBER = "team_member"
    FILING = "filing"

    @property
    def collection(self) -> str:
        """Name of the store collection holding records of this type."""
        return f"{self.value}s"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def parse(cls, value: "str | EntityType") -> "EntityType":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError(f"Unknown entity type: '{value}'. Expected one of: {allowed}") from None


LINKS = "links"
ACTIVITY_LOGS = "activity_logs"
CHECKLIST_ITEMS = "checklist_items"
ALERTS = "alerts"
NOTES = "notes"
COMMENTS = "comments"

ACTIONS = (
    "create",
    "update",
    "delete",
    "status_change",
    "stage_change",
    "note_added",
    "comment_added",
    "checklist_updated",
    "link_created",
    "link_removed",
)

ALERT_TYPES = (
    "agreement_expiry",
    "new_disclosure",
    "comment_reply",
    "checklist_due",
    "link_deleted",
    "project_milestone",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | date | datetime | None) -> datetime | None:
    """Parse a stored timestamp or date into an aware datetime.

    Date-only values are taken as midnight UTC and naive datetimes are
    assumed to be UTC, matching how the hosted store serialises them.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


@dataclass(frozen=True)
class EntityRef:
    """A (type, id) pair referencing a record owned by the store."""

    type: EntityType
    id: str

    @classmethod
    def of(cls, entity_type: "str | EntityType", entity_id: str) -> "EntityRef":
        if not entity_id:
            raise ValidationError("Entity id is required")
        return cls(type=EntityType.parse(entity_type), id=str(entity_id))

    @classmethod
    def parse(cls, value: str) -> "EntityRef":
        """Parse a reference written as ``type:id``."""
        if ":" not in value:
            raise ValidationError(f"Entity reference must look like 'type:id', got '{value}'")
        entity_type, entity_id = value.split(":", 1)
        return cls.of(entity_type.strip(), entity_id.strip())

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"


@dataclass
class EntityView:
    """Type-independent projection of a record for display."""

    ref: EntityRef
    display_name: str
    record: dict[str, Any] = field(default_factory=dict)


@dataclass
class Identity:
    """The current user, used for created_by stamping."""

    id: str
    email: str = ""
    role: str = "user"


@dataclass
class Link:
    """An undirected association between two entities."""

    id: str
    from_entity_type: EntityType
    from_entity_id: str
    to_entity_type: EntityType
    to_entity_id: str
    created_by: str = ""
    created_at: datetime | None = None

    @property
    def from_ref(self) -> EntityRef:
        return EntityRef(self.from_entity_type, self.from_entity_id)

    @property
    def to_ref(self) -> EntityRef:
        return EntityRef(self.to_entity_type, self.to_entity_id)

    def involves(self, ref: EntityRef) -> bool:
        return ref in (self.from_ref, self.to_ref)

    def connects(self, a: EntityRef, b: EntityRef) -> bool:
        """True if this link joins the unordered pair {a, b}."""
        return {self.from_ref, self.to_ref} == {a, b}

    def counterpart_of(self, ref: EntityRef) -> EntityRef:
        """Return the side of the link that is not ``ref``."""
        return self.to_ref if self.from_ref == ref else self.from_ref

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Link":
        return cls(
            id=str(row["id"]),
            from_entity_type=EntityType(row["from_entity_type"]),
            from_entity_id=str(row["from_entity_id"]),
            to_entity_type=EntityType(row["to_entity_type"]),
            to_entity_id=str(row["to_entity_id"]),
            created_by=row.get("created_by") or "",
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class LinkedEntity:
    """A link seen from one of its endpoints."""

    link: Link
    counterpart: EntityRef

    @property
    def counterpart_type(self) -> EntityType:
        return self.counterpart.type

    @property
    def counterpart_id(self) -> str:
        return self.counterpart.id


@dataclass(frozen=True)
class ActivityLogEntry:
    """Immutable record of one action taken against one entity."""

    id: str
    entity_type: EntityType
    entity_id: str
    action: str
    description: str
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    created_by: str = ""

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.entity_type, self.entity_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ActivityLogEntry":
        metadata = row.get("metadata") or {}
        # Older rows carry the payload JSON-encoded
        if isinstance(metadata, str):
            metadata = json.loads(metadata) if metadata.strip() else {}
        return cls(
            id=str(row["id"]),
            entity_type=EntityType(row["entity_type"]),
            entity_id=str(row["entity_id"]),
            action=row["action"],
            description=row.get("description") or "",
            created_at=parse_timestamp(row["created_at"]),
            metadata=metadata,
            created_by=row.get("created_by") or "",
        )


@dataclass
class ChecklistItem:
    """A completable task attached to exactly one entity."""

    id: str
    entity_type: EntityType
    entity_id: str
    title: str
    description: str | None = None
    is_completed: bool = False
    due_date: datetime | None = None
    created_by: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.entity_type, self.entity_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ChecklistItem":
        return cls(
            id=str(row["id"]),
            entity_type=EntityType(row["entity_type"]),
            entity_id=str(row["entity_id"]),
            title=row.get("title") or "",
            description=row.get("description") or None,
            is_completed=bool(row.get("is_completed")),
            due_date=parse_timestamp(row.get("due_date")),
            created_by=row.get("created_by") or "",
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass
class Alert:
    """A notification surfaced to the user.

    Priority is deliberately absent: it depends on the current time and is
    derived on every read by :func:`ip_console.alerts.priority_of`.
    """

    id: str
    type: str
    title: str
    description: str = ""
    entity_type: EntityType | None = None
    entity_id: str | None = None
    due_date: datetime | None = None
    is_read: bool = False
    is_dismissed: bool = False
    created_at: datetime | None = None

    @property
    def ref(self) -> EntityRef | None:
        if self.entity_type is None or not self.entity_id:
            return None
        return EntityRef(self.entity_type, self.entity_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Alert":
        entity_type = row.get("entity_type")
        return cls(
            id=str(row["id"]),
            type=row["type"],
            title=row.get("title") or "",
            description=row.get("description") or "",
            entity_type=EntityType(entity_type) if entity_type else None,
            entity_id=row.get("entity_id") or None,
            due_date=parse_timestamp(row.get("due_date")),
            is_read=bool(row.get("is_read")),
            is_dismissed=bool(row.get("is_dismissed")),
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class Note:
    """Free-form note on an entity, private to its author unless public."""

    id: str
    entity_type: EntityType
    entity_id: str
    content: str
    is_public: bool = False
    created_by: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.entity_type, self.entity_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Note":
        return cls(
            id=str(row["id"]),
            entity_type=EntityType(row["entity_type"]),
            entity_id=str(row["entity_id"]),
            content=row.get("content") or "",
            is_public=bool(row.get("is_public")),
            created_by=row.get("created_by") or "",
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass
class Comment:
    """Comment on an entity; replies point at the comment they answer."""

    id: str
    entity_type: EntityType
    entity_id: str
    content: str
    parent_comment_id: str | None = None
    created_by: str = ""
    created_at: datetime | None = None

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.entity_type, self.entity_id)

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Comment":
        return cls(
            id=str(row["id"]),
            entity_type=EntityType(row["entity_type"]),
            entity_id=str(row["entity_id"]),
            content=row.get("content") or "",
            parent_comment_id=row.get("parent_comment_id") or None,
            created_by=row.get("created_by") or "",
            created_at=parse_timestamp(row.get("created_at")),
        )
