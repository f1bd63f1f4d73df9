"""Notion record store implementation using notion-client."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from notion_client import APIErrorCode, APIResponseError, Client
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from ip_console.errors import NotFoundError, StorageError
from ip_console.store import Store, display_name

logger = structlog.get_logger()

TITLE_PROPERTY = "Name"
# Free-form payloads stored as JSON text
JSON_FIELDS = frozenset({"metadata", "external_links"})
# Notion caps a single rich text object at 2000 characters
RICH_TEXT_LIMIT = 2000


def _is_date_field(name: str) -> bool:
    return name.endswith("_date") or name.endswith("_at")


def _rich_text(value: str) -> list[dict[str, Any]]:
    return [
        {"text": {"content": value[start : start + RICH_TEXT_LIMIT]}} for start in range(0, len(value), RICH_TEXT_LIMIT)
    ]


class NotionStore(Store):
    """Notion-based store using one database per collection.

    Each row is a page in the collection's database. Row fields map onto
    database properties with the same name, and the page ID is the row ID.
    The databases must already define a property for every field written.
    """

    def __init__(self, token: str, databases: dict[str, str]) -> None:
        """Initialize Notion store.

        Args:
            token: Notion integration token
            databases: Mapping of collection name to Notion database ID
        """
        self.token = token
        self.databases = dict(databases)

        if not self.token:
            raise ValueError("Notion token required")
        if not self.databases:
            raise ValueError("At least one Notion database must be configured")

        logger.debug("Initializing Notion store", collections=sorted(self.databases))
        self.client = Client(auth=self.token)
        logger.info("Notion store initialized", collections=sorted(self.databases))

    def _database_id(self, collection: str) -> str:
        database_id = self.databases.get(collection)
        if not database_id:
            raise ValueError(
                f"No Notion database configured for '{collection}'. Set it using:\n"
                f"  ip-console config set notion.database.{collection} <database-id>"
            )
        return database_id

    @contextmanager
    def _api_errors(self, collection: str, row_id: str | None = None) -> Iterator[None]:
        """Translate notion-client failures into store errors."""
        try:
            yield
        except APIResponseError as e:
            if row_id is not None and e.code == APIErrorCode.ObjectNotFound:
                raise NotFoundError(collection, row_id) from e
            logger.error("Notion API request failed", collection=collection, row_id=row_id, code=e.code, error=str(e))
            raise StorageError(f"Notion request failed for {collection}: {e}") from e
        except (HTTPResponseError, RequestTimeoutError) as e:
            logger.error("Notion request failed", collection=collection, row_id=row_id, error=str(e))
            raise StorageError(f"Notion request failed for {collection}: {e}") from e

    def _parse_properties(self, properties: dict[str, Any]) -> dict[str, Any]:
        """Parse Notion properties into simple values."""
        parsed: dict[str, Any] = {}
        for key, value in properties.items():
            prop_type = value.get("type")

            if prop_type == "title":
                title_array = value.get("title", [])
                parsed[key] = "".join([t.get("plain_text", "") for t in title_array])
            elif prop_type == "rich_text":
                text_array = value.get("rich_text", [])
                parsed[key] = "".join([t.get("plain_text", "") for t in text_array]) or None
            elif prop_type == "checkbox":
                parsed[key] = bool(value.get("checkbox"))
            elif prop_type == "number":
                parsed[key] = value.get("number")
            elif prop_type == "date":
                date = value.get("date")
                parsed[key] = date.get("start") if date else None
            elif prop_type == "select":
                select = value.get("select")
                parsed[key] = select.get("name") if select else None
            elif prop_type == "multi_select":
                multi_select = value.get("multi_select", [])
                parsed[key] = [item.get("name") for item in multi_select]
            elif prop_type == "status":
                status = value.get("status")
                parsed[key] = status.get("name") if status else None
            elif prop_type == "relation":
                relations = value.get("relation", [])
                parsed[key] = [rel.get("id") for rel in relations]
            else:
                parsed[key] = value

        return parsed

    def _page_to_row(self, page: dict[str, Any]) -> dict[str, Any]:
        """Convert Notion page to a store row."""
        properties = self._parse_properties(page.get("properties", {}))
        properties.pop(TITLE_PROPERTY, None)

        row: dict[str, Any] = {}
        for key, value in properties.items():
            if key in JSON_FIELDS and isinstance(value, str):
                value = json.loads(value)
            row[key] = value

        row["id"] = page["id"]
        if not row.get("created_at"):
            row["created_at"] = page.get("created_time")
        return row

    def _build_properties(self, fields: dict[str, Any], title: str | None = None) -> dict[str, Any]:
        """Build Notion properties object from row fields."""
        properties: dict[str, Any] = {}

        if title is not None:
            properties[TITLE_PROPERTY] = {"title": [{"text": {"content": title}}]}

        for key, value in fields.items():
            if key == "id":
                continue
            if key in JSON_FIELDS:
                properties[key] = {"rich_text": _rich_text(json.dumps(value)) if value is not None else []}
            elif isinstance(value, bool):
                properties[key] = {"checkbox": value}
            elif _is_date_field(key):
                properties[key] = {"date": {"start": str(value)} if value else None}
            elif isinstance(value, (int, float)):
                properties[key] = {"number": value}
            elif isinstance(value, list):
                properties[key] = {"multi_select": [{"name": str(item)} for item in value]}
            elif value is None:
                properties[key] = {"rich_text": []}
            else:
                properties[key] = {"rich_text": _rich_text(str(value))}

        return properties

    def _filter_condition(self, key: str, value: Any) -> dict[str, Any]:
        if isinstance(value, bool):
            return {"property": key, "checkbox": {"equals": value}}
        if isinstance(value, (int, float)):
            return {"property": key, "number": {"equals": value}}
        if value is None:
            return {"property": key, "rich_text": {"is_empty": True}}
        return {"property": key, "rich_text": {"equals": str(value)}}

    def select(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Query a collection's database, following pagination cursors."""
        logger.debug("Querying Notion database", collection=collection, filters=filters, order_by=order_by)

        query_params: dict[str, Any] = {"database_id": self._database_id(collection)}

        if filters:
            filter_conditions = [self._filter_condition(key, value) for key, value in filters.items()]
            if len(filter_conditions) == 1:
                query_params["filter"] = filter_conditions[0]
            else:
                query_params["filter"] = {"and": filter_conditions}

        if order_by:
            query_params["sorts"] = [{"property": order_by, "direction": "descending" if descending else "ascending"}]

        rows: list[dict[str, Any]] = []
        while True:
            with self._api_errors(collection):
                response = self.client.databases.query(**query_params)

            rows.extend(self._page_to_row(page) for page in response.get("results", []))
            if not response.get("has_more") or not response.get("next_cursor"):
                break
            query_params["start_cursor"] = response["next_cursor"]

        logger.debug("Queried Notion database", collection=collection, count=len(rows))
        return rows

    def get(self, collection: str, row_id: str) -> dict[str, Any]:
        """Read a Notion page by ID."""
        self._database_id(collection)
        with self._api_errors(collection, row_id):
            page = self.client.pages.retrieve(page_id=row_id)

        if page.get("archived") or page.get("in_trash"):
            raise NotFoundError(collection, row_id)
        return self._page_to_row(page)

    def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        """Create a new Notion page in the collection's database."""
        logger.info("Creating Notion page", collection=collection)

        properties = self._build_properties(row, title=display_name(row))
        with self._api_errors(collection):
            response = self.client.pages.create(
                parent={"database_id": self._database_id(collection)}, properties=properties
            )

        created = self._page_to_row(response)
        logger.info("Notion page created", collection=collection, row_id=created["id"])
        return created

    def update(self, collection: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Update properties of a Notion page."""
        logger.info("Updating Notion page", collection=collection, row_id=row_id, fields=list(fields.keys()))

        current = self.get(collection, row_id)
        title = None
        if any(key in fields for key in ("title", "name", "first_name", "last_name")):
            title = display_name({**current, **fields})

        properties = self._build_properties(fields, title=title)
        with self._api_errors(collection, row_id):
            response = self.client.pages.update(page_id=row_id, properties=properties)

        logger.info("Notion page updated successfully", collection=collection, row_id=row_id)
        return self._page_to_row(response)

    def delete(self, collection: str, row_id: str) -> None:
        """Delete (archive) a Notion page."""
        logger.info("Deleting (archiving) Notion page", collection=collection, row_id=row_id)

        self.get(collection, row_id)
        with self._api_errors(collection, row_id):
            self.client.pages.update(page_id=row_id, archived=True)

        logger.info("Notion page archived", collection=collection, row_id=row_id)
