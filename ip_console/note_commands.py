"""Note and comment commands for the IP console CLI."""

from cyclopts import App

from ip_console.models import EntityRef
from ip_console.notes import Discussion, thread_comments

note_app = App(name="note", help="Manage notes on a record")
comment_app = App(name="comment", help="Discuss a record in threaded comments")


def _discussion() -> Discussion:
    from ip_console.cli import get_identity, get_store

    return Discussion(get_store(), get_identity())


@note_app.command
def add(ref: str, content: str, public: bool = False) -> None:
    """Add a note to a record. Notes are private unless --public is given."""
    note = _discussion().create_note(EntityRef.parse(ref), content, is_public=public)
    print(f"Added {'public' if note.is_public else 'private'} note {note.id}")


@note_app.command(name="list")
def list_notes(ref: str) -> None:
    """List the notes on a record you can see, newest first."""
    notes = _discussion().list_notes(EntityRef.parse(ref))
    if not notes:
        print(f"No notes for {ref}")
        return

    for note in notes:
        visibility = "public" if note.is_public else "private"
        print(f"  {note.id} [{visibility}] {note.content}")


@note_app.command
def edit(note_id: str, content: str | None = None, public: bool | None = None) -> None:
    """Change a note's content or visibility."""
    note = _discussion().update_note(note_id, content=content, is_public=public)
    print(f"Updated note {note.id}")


@note_app.command
def remove(*note_ids: str) -> None:
    """Delete notes."""
    discussion = _discussion()
    for note_id in note_ids:
        discussion.delete_note(note_id)
    print(f"Deleted {len(note_ids)} note(s)")


@comment_app.command(name="add")
def add_comment(ref: str, content: str, reply_to: str | None = None) -> None:
    """Comment on a record, or reply to a comment with --reply-to."""
    comment = _discussion().create_comment(EntityRef.parse(ref), content, parent_comment_id=reply_to)
    print(f"Added {'reply' if comment.is_reply else 'comment'} {comment.id}")


@comment_app.command(name="list")
def list_comments(ref: str) -> None:
    """Show a record's comment threads, oldest first."""
    threads = thread_comments(_discussion().list_comments(EntityRef.parse(ref)))
    if not threads:
        print(f"No comments for {ref}")
        return

    for thread in threads:
        print(f"  {thread.comment.id}: {thread.comment.content}")
        for reply in thread.replies:
            print(f"    ↳ {reply.id}: {reply.content}")


@comment_app.command(name="remove")
def remove_comments(*comment_ids: str) -> None:
    """Delete comments."""
    discussion = _discussion()
    for comment_id in comment_ids:
        discussion.delete_comment(comment_id)
    print(f"Deleted {len(comment_ids)} comment(s)")
