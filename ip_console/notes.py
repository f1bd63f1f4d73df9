"""Notes and threaded comments attached to records."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from ip_console.alerts import AlertCenter
from ip_console.errors import StorageError, ValidationError
from ip_console.models import (
    COMMENTS,
    NOTES,
    ActivityLogEntry,
    Comment,
    EntityRef,
    Identity,
    Note,
    format_timestamp,
    utcnow,
)
from ip_console.store import Store
from ip_console.timeline import ActivityTimeline, retract

logger = structlog.get_logger()

PREVIEW_LENGTH = 80


@dataclass
class CommentThread:
    """A top-level comment and its replies, oldest first."""

    comment: Comment
    replies: list[Comment] = field(default_factory=list)


def is_visible(note: Note, identity: Identity) -> bool:
    """Public notes are visible to everyone, private ones only to their author."""
    return note.is_public or note.created_by == identity.id


def thread_comments(comments: Iterable[Comment]) -> list[CommentThread]:
    """Group comments into threads, keeping the incoming order.

    Replies whose parent comment no longer exists are left out.
    """
    comments = list(comments)
    threads = {comment.id: CommentThread(comment) for comment in comments if not comment.is_reply}
    for comment in comments:
        if comment.is_reply and comment.parent_comment_id in threads:
            threads[comment.parent_comment_id].replies.append(comment)
    return list(threads.values())


def _content(value: str | None, kind: str) -> str:
    content = (value or "").strip()
    if not content:
        raise ValidationError(f"{kind} content is required")
    return content


def _preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[: PREVIEW_LENGTH - 3].rstrip() + "..."


class Discussion:
    """Notes and comments on entities.

    Creating a note logs ``note_added`` and creating a comment logs
    ``comment_added`` on the entity's timeline. A reply to someone else's
    comment also raises a ``comment_reply`` alert for that comment's author.
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
        self.alerts = AlertCenter(store, identity, clock)
        self.clock = clock

    def list_notes(self, ref: EntityRef) -> list[Note]:
        """Notes on the entity the current user may see, newest first."""
        rows = self.store.select(
            NOTES,
            filters={"entity_type": ref.type.value, "entity_id": ref.id},
            order_by="created_at",
            descending=True,
        )
        notes = [note for note in (Note.from_row(row) for row in rows) if is_visible(note, self.identity)]
        logger.debug("Notes listed", ref=str(ref), count=len(notes))
        return notes

    def create_note(self, ref: EntityRef, content: str, is_public: bool = False) -> Note:
        """Add a note to an entity.

        Raises:
            ValidationError: If the content is empty
        """
        content = _content(content, "Note")
        now = format_timestamp(self.clock())
        row = self.store.insert(
            NOTES,
            {
                "entity_type": ref.type.value,
                "entity_id": ref.id,
                "content": content,
                "is_public": is_public,
                "created_by": self.identity.id,
                "user_id": self.identity.id,
                "created_at": now,
                "updated_at": now,
            },
        )
        note = Note.from_row(row)

        visibility = "public" if is_public else "private"
        try:
            self.timeline.record_activity(
                ref, "note_added", f"Added a {visibility} note", {"note_id": note.id, "is_public": is_public}
            )
        except StorageError:
            logger.error("Note activity not stored, removing note", note_id=note.id)
            self.store.delete(NOTES, note.id)
            raise

        logger.info("Note created", ref=str(ref), note_id=note.id, is_public=is_public)
        return note

    def update_note(self, note_id: str, content: str | None = None, is_public: bool | None = None) -> Note:
        """Change a note's content, its visibility, or both.

        Raises:
            ValidationError: If nothing is changed or the content is emptied
            NotFoundError: If the note does not exist
        """
        changes: dict[str, Any] = {}
        if content is not None:
            changes["content"] = _content(content, "Note")
        if is_public is not None:
            changes["is_public"] = is_public
        if not changes:
            raise ValidationError("No fields to update")
        changes["updated_at"] = format_timestamp(self.clock())

        note = Note.from_row(self.store.update(NOTES, note_id, changes))
        logger.info("Note updated", note_id=note_id, fields=sorted(changes))
        return note

    def delete_note(self, note_id: str) -> None:
        """Remove a note.

        Raises:
            NotFoundError: If the note does not exist
        """
        self.store.delete(NOTES, note_id)
        logger.info("Note deleted", note_id=note_id)

    def list_comments(self, ref: EntityRef) -> list[Comment]:
        """Comments on the entity, oldest first."""
        rows = self.store.select(
            COMMENTS,
            filters={"entity_type": ref.type.value, "entity_id": ref.id},
            order_by="created_at",
        )
        return [Comment.from_row(row) for row in rows]

    def create_comment(self, ref: EntityRef, content: str, parent_comment_id: str | None = None) -> Comment:
        """Add a comment, or a reply when ``parent_comment_id`` is given.

        Replies to a reply join the thread of the top-level comment.

        Raises:
            ValidationError: If the content is empty or the parent is on another entity
            NotFoundError: If the parent comment does not exist
        """
        content = _content(content, "Comment")

        parent = None
        if parent_comment_id is not None:
            parent = Comment.from_row(self.store.get(COMMENTS, parent_comment_id))
            if parent.ref != ref:
                raise ValidationError(f"Comment {parent.id} belongs to {parent.ref}, not {ref}")
            parent_comment_id = parent.parent_comment_id or parent.id

        row = self.store.insert(
            COMMENTS,
            {
                "entity_type": ref.type.value,
                "entity_id": ref.id,
                "content": content,
                "parent_comment_id": parent_comment_id,
                "created_by": self.identity.id,
                "user_id": self.identity.id,
                "created_at": format_timestamp(self.clock()),
            },
        )
        comment = Comment.from_row(row)

        logged: list[ActivityLogEntry] = []
        try:
            description = "Replied to a comment" if comment.is_reply else "Added a comment"
            metadata = {"comment_id": comment.id, "parent_comment_id": parent_comment_id}
            logged.append(self.timeline.record_activity(ref, "comment_added", description, metadata))
            if parent is not None and parent.created_by and parent.created_by != self.identity.id:
                self.alerts.create_alert(
                    "comment_reply",
                    "New reply to your comment",
                    _preview(content),
                    ref=ref,
                    recipient=parent.created_by,
                )
        except StorageError:
            logger.error("Comment activity not stored, removing comment", comment_id=comment.id)
            retract(self.store, logged)
            self.store.delete(COMMENTS, comment.id)
            raise

        logger.info("Comment created", ref=str(ref), comment_id=comment.id, parent_comment_id=parent_comment_id)
        return comment

    def delete_comment(self, comment_id: str) -> None:
        """Remove a comment. Its replies are kept but no longer shown in a thread.

        Raises:
            NotFoundError: If the comment does not exist
        """
        self.store.delete(COMMENTS, comment_id)
        logger.info("Comment deleted", comment_id=comment_id)
