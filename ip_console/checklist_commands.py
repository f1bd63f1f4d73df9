"""Checklist commands for the IP console CLI."""

from cyclopts import App

from ip_console.checklist import Checklist, completion_rate, due_date_status, split_items
from ip_console.models import EntityRef

checklist_app = App(name="checklist", help="Manage a record's checklist")

STATUS_LABELS = {
    "overdue": "Overdue",
    "today": "Due Today",
    "soon": "Due Soon",
    "upcoming": "Upcoming",
}


def _checklist() -> Checklist:
    from ip_console.cli import get_identity, get_store

    return Checklist(get_store(), get_identity())


@checklist_app.command
def add(ref: str, title: str, description: str | None = None, due: str | None = None) -> None:
    """Add a checklist item to a record."""
    item = _checklist().create_item(EntityRef.parse(ref), title, description=description, due_date=due)
    print(f"Added checklist item {item.id}: {item.title}")


@checklist_app.command(name="list")
def list_items(ref: str) -> None:
    """List a record's checklist with progress."""
    from ip_console.cli import now

    items = _checklist().list_items(EntityRef.parse(ref))
    if not items:
        print(f"No checklist items for {ref}")
        return

    current = now()
    pending, completed = split_items(items)
    print(f"{len(completed)} of {len(items)} items completed ({completion_rate(items)}%)\n")
    for item in pending + completed:
        marker = "[x]" if item.is_completed else "[ ]"
        status = due_date_status(item, current)
        due_str = ""
        if item.due_date is not None:
            due_str = f" (due {item.due_date.date().isoformat()}"
            due_str += f", {STATUS_LABELS[status]})" if not item.is_completed else ")"
        print(f"  {marker} {item.id}: {item.title}{due_str}")


@checklist_app.command
def edit(item_id: str, title: str | None = None, description: str | None = None, due: str | None = None) -> None:
    """Edit an item's title, description or due date."""
    fields: dict[str, str] = {}
    if title is not None:
        fields["title"] = title
    if description is not None:
        fields["description"] = description
    if due is not None:
        fields["due_date"] = due
    if not fields:
        print("Nothing to update")
        return

    item = _checklist().update_item(item_id, fields)
    print(f"Updated checklist item {item.id}: {item.title}")


@checklist_app.command
def done(item_id: str) -> None:
    """Mark an item as completed."""
    item = _checklist().update_item(item_id, {"is_completed": True})
    print(f"Item marked as completed: {item.title}")


@checklist_app.command
def undo(item_id: str) -> None:
    """Mark an item as not completed."""
    item = _checklist().update_item(item_id, {"is_completed": False})
    print(f"Item marked as incomplete: {item.title}")


@checklist_app.command
def remove(*item_ids: str) -> None:
    """Delete checklist items."""
    checklist = _checklist()
    for item_id in item_ids:
        checklist.delete_item(item_id)
    print(f"Deleted {len(item_ids)} checklist item(s)")
