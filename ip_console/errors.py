"""Error types raised by the IP console."""


class ConsoleError(Exception):
    """Base class for all IP console errors."""


class ValidationError(ConsoleError, ValueError):
    """A required field is missing or a value is outside its allowed set."""


class DuplicateLinkError(ConsoleError):
    """The two entities are already linked."""


class SelfLinkError(ConsoleError):
    """An entity cannot be linked to itself."""


class NotFoundError(ConsoleError, LookupError):
    """The referenced record does not exist (or no longer exists)."""

    def __init__(self, collection: str, row_id: str) -> None:
        self.collection = collection
        self.row_id = row_id
        super().__init__(f"{collection} record not found: {row_id}")


class StorageError(ConsoleError):
    """The record store call failed or timed out."""
