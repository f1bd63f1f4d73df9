"""Record store interface for the IP console."""

from abc import ABC, abstractmethod
from typing import Any

import structlog

from ip_console.models import EntityRef, EntityView

logger = structlog.get_logger()


def display_name(record: dict[str, Any]) -> str:
    """Project a record of any entity type onto a common display name.

    Disclosures, projects, agreements and filings carry a ``title``, startups
    a ``name`` and people a first and last name.
    """
    for key in ("title", "name"):
        value = record.get(key)
        if value:
            return str(value)
    person = " ".join(part for part in (record.get("first_name"), record.get("last_name")) if part)
    return person or "Untitled"


class Store(ABC):
    """Abstract base class for record stores.

    A store holds named collections of rows (plain dicts keyed by field name).
    Every row has a string ``id`` assigned by the store on insert. Backends
    report missing rows with ``NotFoundError`` and any other failure of the
    underlying service with ``StorageError``.
    """

    @abstractmethod
    def select(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return the rows of a collection matching all equality filters."""
        pass

    @abstractmethod
    def get(self, collection: str, row_id: str) -> dict[str, Any]:
        """Read a row by ID."""
        pass

    @abstractmethod
    def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored, including its new ID."""
        pass

    @abstractmethod
    def update(self, collection: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into a row and return the row as stored."""
        pass

    @abstractmethod
    def delete(self, collection: str, row_id: str) -> None:
        """Delete a row by ID."""
        pass

    def resolve(self, ref: EntityRef) -> EntityView:
        """Resolve an entity reference into a displayable view.

        Raises:
            NotFoundError: If the referenced record no longer exists
        """
        record = self.get(ref.type.collection, ref.id)
        view = EntityView(ref=ref, display_name=display_name(record), record=record)
        logger.debug("Resolved entity", ref=str(ref), display_name=view.display_name)
        return view
