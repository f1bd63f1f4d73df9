"""Activity timeline commands for the IP console CLI."""

from cyclopts import App

from ip_console.models import EntityRef
from ip_console.timeline import ActivityTimeline, action_types, filter_by_action, format_time_ago, group_by_date

timeline_app = App(name="timeline", help="Show and add to a record's activity history")


def _timeline() -> ActivityTimeline:
    from ip_console.cli import get_identity, get_store

    return ActivityTimeline(get_store(), get_identity())


@timeline_app.command
def show(ref: str, action: str = "all") -> None:
    """Show a record's activity grouped by day, most recent first."""
    from ip_console.cli import now

    entries = _timeline().get_timeline(EntityRef.parse(ref))
    if not entries:
        print(f"No activity recorded for {ref}")
        return

    current = now()
    filtered = filter_by_action(entries, action)
    print(f"Activity for {ref} ({len(filtered)} of {len(entries)}; actions: {', '.join(action_types(entries))})")
    for group in group_by_date(filtered, current):
        print(f"\n{group.label}")
        for entry in group.entries:
            print(f"  [{entry.action}] {entry.description} - {format_time_ago(entry.created_at, current)}")


@timeline_app.command
def log(ref: str, action: str, description: str) -> None:
    """Record an activity against a record."""
    entry = _timeline().record_activity(EntityRef.parse(ref), action, description)
    print(f"Recorded {entry.action} on {ref} ({entry.id})")
