"""Record store implementations."""

from ip_console.stores.local import LocalStore
from ip_console.stores.notion import NotionStore

__all__ = ["LocalStore", "NotionStore"]
