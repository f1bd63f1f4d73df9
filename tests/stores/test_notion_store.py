"""Tests for the Notion record store."""

from unittest.mock import MagicMock, Mock

import pytest
from notion_client import Client
from notion_client.errors import RequestTimeoutError

from ip_console.errors import NotFoundError, StorageError
from ip_console.stores.notion import NotionStore

DATABASES = {"checklist_items": "db-checklist", "projects": "db-projects"}


@pytest.fixture
def mock_notion_client() -> Mock:
    """Create a mock Notion client."""
    client = MagicMock(spec=Client)
    client.pages = MagicMock()
    client.databases = MagicMock()
    return client


@pytest.fixture
def notion_store(mock_notion_client: Mock, monkeypatch: pytest.MonkeyPatch) -> NotionStore:
    """Create a Notion store with mocked client."""
    with monkeypatch.context() as m:
        m.setattr("ip_console.stores.notion.Client", lambda auth: mock_notion_client)
        store = NotionStore(token="fake_token", databases=DATABASES)

    return store


@pytest.fixture
def sample_checklist_page() -> dict:
    """Create a sample Notion page holding a checklist item."""
    return {
        "id": "page-item-1",
        "url": "https://notion.so/page-item-1",
        "created_time": "2025-01-10T12:00:00.000Z",
        "archived": False,
        "properties": {
            "Name": {"type": "title", "title": [{"plain_text": "File provisional"}]},
            "title": {"type": "rich_text", "rich_text": [{"plain_text": "File provisional"}]},
            "description": {"type": "rich_text", "rich_text": []},
            "entity_type": {"type": "rich_text", "rich_text": [{"plain_text": "project"}]},
            "entity_id": {"type": "rich_text", "rich_text": [{"plain_text": "p1"}]},
            "is_completed": {"type": "checkbox", "checkbox": False},
            "due_date": {"type": "date", "date": {"start": "2025-01-12"}},
            "created_at": {"type": "date", "date": {"start": "2025-01-10T12:00:00+00:00"}},
        },
    }


def test_requires_token() -> None:
    """Test the store refuses to start without a token."""
    with pytest.raises(ValueError, match="token"):
        NotionStore(token="", databases=DATABASES)


def test_insert_builds_typed_properties(
    notion_store: NotionStore, mock_notion_client: Mock, sample_checklist_page: dict
) -> None:
    """Test inserting a row maps Python values onto Notion property types."""
    mock_notion_client.pages.create.return_value = sample_checklist_page

    row = notion_store.insert(
        "checklist_items",
        {
            "title": "File provisional",
            "description": None,
            "entity_type": "project",
            "entity_id": "p1",
            "is_completed": False,
            "due_date": "2025-01-12T00:00:00+00:00",
            "created_at": "2025-01-10T12:00:00+00:00",
        },
    )

    call_kwargs = mock_notion_client.pages.create.call_args[1]
    assert call_kwargs["parent"] == {"database_id": "db-checklist"}
    properties = call_kwargs["properties"]
    assert properties["Name"] == {"title": [{"text": {"content": "File provisional"}}]}
    assert properties["is_completed"] == {"checkbox": False}
    assert properties["due_date"] == {"date": {"start": "2025-01-12T00:00:00+00:00"}}
    assert properties["entity_id"] == {"rich_text": [{"text": {"content": "p1"}}]}
    assert properties["description"] == {"rich_text": []}

    assert row["id"] == "page-item-1"
    assert row["title"] == "File provisional"
    assert row["description"] is None
    assert row["is_completed"] is False
    assert row["due_date"] == "2025-01-12"
    assert "Name" not in row


def test_build_properties_lists_numbers_and_json(notion_store: NotionStore) -> None:
    """Test list, number and JSON payload fields."""
    properties = notion_store._build_properties({"tags": ["ai", "sensors"], "trl": 4, "metadata": {"link_id": "l1"}})
    assert properties["tags"] == {"multi_select": [{"name": "ai"}, {"name": "sensors"}]}
    assert properties["trl"] == {"number": 4}
    assert properties["metadata"] == {"rich_text": [{"text": {"content": '{"link_id": "l1"}'}}]}


def test_build_properties_splits_long_text(notion_store: NotionStore) -> None:
    """Test long text is split into Notion-sized chunks."""
    properties = notion_store._build_properties({"description": "x" * 4500})
    chunks = properties["description"]["rich_text"]
    assert [len(chunk["text"]["content"]) for chunk in chunks] == [2000, 2000, 500]


def test_json_fields_are_decoded(notion_store: NotionStore) -> None:
    """Test JSON payload properties come back as dicts."""
    row = notion_store._page_to_row(
        {
            "id": "page-log-1",
            "created_time": "2025-01-10T12:00:00.000Z",
            "properties": {"metadata": {"type": "rich_text", "rich_text": [{"plain_text": '{"link_id": "l1"}'}]}},
        }
    )
    assert row["metadata"] == {"link_id": "l1"}
    assert row["created_at"] == "2025-01-10T12:00:00.000Z"


def test_select_with_filters_and_pagination(
    notion_store: NotionStore, mock_notion_client: Mock, sample_checklist_page: dict
) -> None:
    """Test querying follows cursors and combines filters."""
    second_page = {**sample_checklist_page, "id": "page-item-2"}
    mock_notion_client.databases.query.side_effect = [
        {"results": [sample_checklist_page], "has_more": True, "next_cursor": "cursor-2"},
        {"results": [second_page], "has_more": False, "next_cursor": None},
    ]

    rows = notion_store.select(
        "checklist_items",
        filters={"entity_type": "project", "is_completed": False},
        order_by="created_at",
        descending=True,
    )

    assert [row["id"] for row in rows] == ["page-item-1", "page-item-2"]
    assert mock_notion_client.databases.query.call_count == 2

    first_call = mock_notion_client.databases.query.call_args_list[0][1]
    assert first_call["database_id"] == "db-checklist"
    assert first_call["filter"] == {
        "and": [
            {"property": "entity_type", "rich_text": {"equals": "project"}},
            {"property": "is_completed", "checkbox": {"equals": False}},
        ]
    }
    assert first_call["sorts"] == [{"property": "created_at", "direction": "descending"}]
    assert mock_notion_client.databases.query.call_args_list[1][1]["start_cursor"] == "cursor-2"


def test_select_unconfigured_collection(notion_store: NotionStore) -> None:
    """Test collections without a database are reported as configuration errors."""
    with pytest.raises(ValueError, match="notion.database.alerts"):
        notion_store.select("alerts")


def test_get_archived_page_is_not_found(
    notion_store: NotionStore, mock_notion_client: Mock, sample_checklist_page: dict
) -> None:
    """Test archived pages count as deleted."""
    mock_notion_client.pages.retrieve.return_value = {**sample_checklist_page, "archived": True}

    with pytest.raises(NotFoundError):
        notion_store.get("checklist_items", "page-item-1")


def test_update_recomputes_title(
    notion_store: NotionStore, mock_notion_client: Mock, sample_checklist_page: dict
) -> None:
    """Test updating the title also updates the page title property."""
    mock_notion_client.pages.retrieve.return_value = sample_checklist_page
    mock_notion_client.pages.update.return_value = sample_checklist_page

    notion_store.update("checklist_items", "page-item-1", {"title": "File PCT", "is_completed": True})

    call_kwargs = mock_notion_client.pages.update.call_args[1]
    assert call_kwargs["page_id"] == "page-item-1"
    assert call_kwargs["properties"]["Name"] == {"title": [{"text": {"content": "File PCT"}}]}
    assert call_kwargs["properties"]["is_completed"] == {"checkbox": True}


def test_update_without_title_keeps_page_title(
    notion_store: NotionStore, mock_notion_client: Mock, sample_checklist_page: dict
) -> None:
    """Test updates that do not touch the name leave the title property alone."""
    mock_notion_client.pages.retrieve.return_value = sample_checklist_page
    mock_notion_client.pages.update.return_value = sample_checklist_page

    notion_store.update("checklist_items", "page-item-1", {"is_completed": True})

    assert "Name" not in mock_notion_client.pages.update.call_args[1]["properties"]


def test_delete_archives_page(notion_store: NotionStore, mock_notion_client: Mock, sample_checklist_page: dict) -> None:
    """Test deleting archives the page."""
    mock_notion_client.pages.retrieve.return_value = sample_checklist_page

    notion_store.delete("checklist_items", "page-item-1")

    mock_notion_client.pages.update.assert_called_once_with(page_id="page-item-1", archived=True)


def test_timeout_is_storage_error(notion_store: NotionStore, mock_notion_client: Mock) -> None:
    """Test client timeouts surface as StorageError."""
    mock_notion_client.databases.query.side_effect = RequestTimeoutError()

    with pytest.raises(StorageError):
        notion_store.select("projects")


def test_parse_properties(notion_store: NotionStore) -> None:
    """Test parsing the supported property types."""
    parsed = notion_store._parse_properties(
        {
            "Name": {"type": "title", "title": [{"plain_text": "Test"}]},
            "stage": {"type": "select", "select": {"name": "Seed"}},
            "status": {"type": "status", "status": {"name": "Active"}},
            "trl": {"type": "number", "number": 5},
            "related": {"type": "relation", "relation": [{"id": "page-1"}]},
            "end_date": {"type": "date", "date": None},
        }
    )
    assert parsed == {
        "Name": "Test",
        "stage": "Seed",
        "status": "Active",
        "trl": 5,
        "related": ["page-1"],
        "end_date": None,
    }
