"""Shared fixtures for IP console tests."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from ip_console.errors import StorageError
from ip_console.models import Identity
from ip_console.stores.local import LocalStore


class FakeClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FailingStore(LocalStore):
    """In-memory store whose writes to chosen collections fail."""

    def __init__(self) -> None:
        super().__init__()
        self.failing_inserts: set[str] = set()
        self.failing_updates: set[str] = set()
        self.failing_deletes: set[str] = set()

    def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        if collection in self.failing_inserts:
            raise StorageError(f"insert into {collection} failed")
        return super().insert(collection, row)

    def update(self, collection: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        if collection in self.failing_updates:
            raise StorageError(f"update of {collection} failed")
        return super().update(collection, row_id, fields)

    def delete(self, collection: str, row_id: str) -> None:
        if collection in self.failing_deletes:
            raise StorageError(f"delete from {collection} failed")
        super().delete(collection, row_id)


@pytest.fixture
def store() -> LocalStore:
    """Create an in-memory store."""
    return LocalStore()


@pytest.fixture
def failing_store() -> FailingStore:
    """Create an in-memory store that can be told to fail writes."""
    return FailingStore()


@pytest.fixture
def identity() -> Identity:
    """Create the acting user."""
    return Identity(id="user-1", email="officer@example.edu", role="admin")


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock fixed at 2025-01-10 12:00 UTC."""
    return FakeClock(datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc))
