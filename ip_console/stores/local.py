"""Local record store kept in memory and optionally persisted to YAML."""

import copy
import uuid
from pathlib import Path
from typing import Any

import structlog
import yaml

from ip_console.errors import NotFoundError, StorageError
from ip_console.store import Store

logger = structlog.get_logger()


class LocalStore(Store):
    """Dict-backed store.

    Rows live in memory as ``{collection: {id: row}}``. When a path is given
    the whole store is loaded from that YAML file on start-up and written
    back on every mutation, which is enough for a single operator working
    from the command line. A mutation whose write fails leaves the store
    as it was.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        """Initialize local store.

        Args:
            path: Optional YAML file to load from and persist to
        """
        self.path = Path(path) if path is not None else None
        self._collections: dict[str, dict[str, dict[str, Any]]] = self._load()
        logger.debug("Local store initialized", path=str(self.path) if self.path else None)

    def _load(self) -> dict[str, dict[str, dict[str, Any]]]:
        if self.path is None or not self.path.exists():
            return {}

        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load local store", path=str(self.path), error=str(e))
            raise StorageError(f"Failed to load records from {self.path}: {e}") from e

        logger.debug("Local store loaded", collections=list(data.keys()))
        return data

    def _save(self, collections: dict[str, dict[str, dict[str, Any]]]) -> None:
        if self.path is None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(collections, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to save local store", path=str(self.path), error=str(e))
            raise StorageError(f"Failed to save records to {self.path}: {e}") from e

    def _staged(self, collection: str) -> tuple[dict[str, dict[str, dict[str, Any]]], dict[str, dict[str, Any]]]:
        """Copy of the store with a private copy of one collection's rows."""
        rows = dict(self._collections.get(collection, {}))
        return {**self._collections, collection: rows}, rows

    def _commit(self, collections: dict[str, dict[str, dict[str, Any]]]) -> None:
        # Memory only changes once the file holds the new state
        self._save(collections)
        self._collections = collections

    def _rows(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.get(collection, {})

    def select(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Return matching rows from a collection."""
        rows = [
            row
            for row in self._collections.get(collection, {}).values()
            if all(row.get(key) == value for key, value in (filters or {}).items())
        ]

        if order_by:
            # Rows missing the field sort before rows that have it
            rows.sort(key=lambda row: (row.get(order_by) is not None, row.get(order_by) or ""), reverse=descending)

        logger.debug("Selected rows", collection=collection, filters=filters, count=len(rows))
        return copy.deepcopy(rows)

    def get(self, collection: str, row_id: str) -> dict[str, Any]:
        """Read a row by ID."""
        row = self._collections.get(collection, {}).get(row_id)
        if row is None:
            raise NotFoundError(collection, row_id)
        return copy.deepcopy(row)

    def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row under a fresh ID."""
        stored = copy.deepcopy(row)
        stored["id"] = str(uuid.uuid4())
        collections, rows = self._staged(collection)
        rows[stored["id"]] = stored
        self._commit(collections)
        logger.info("Inserted row", collection=collection, row_id=stored["id"])
        return copy.deepcopy(stored)

    def update(self, collection: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into an existing row."""
        if row_id not in self._rows(collection):
            raise NotFoundError(collection, row_id)

        collections, rows = self._staged(collection)
        updated = {**rows[row_id], **copy.deepcopy(fields), "id": row_id}
        rows[row_id] = updated
        self._commit(collections)
        logger.info("Updated row", collection=collection, row_id=row_id, fields=list(fields.keys()))
        return copy.deepcopy(updated)

    def delete(self, collection: str, row_id: str) -> None:
        """Delete a row by ID."""
        if row_id not in self._rows(collection):
            raise NotFoundError(collection, row_id)

        collections, rows = self._staged(collection)
        del rows[row_id]
        self._commit(collections)
        logger.info("Deleted row", collection=collection, row_id=row_id)
