"""Alert commands for the IP console CLI."""

from typing import Literal

from cyclopts import App

from ip_console.alerts import AlertCenter, due_this_week_count, high_priority_count, priority_of, unread_count

alert_app = App(name="alert", help="Review, read and dismiss alerts")


def _center() -> AlertCenter:
    from ip_console.cli import get_identity, get_store

    return AlertCenter(get_store(), get_identity())


@alert_app.command(name="list")
def list_alerts(
    tab: Literal["all", "deadlines", "reviews", "updates"] = "all",
    search: str | None = None,
    type: str | None = None,
    status: Literal["all", "unread", "read"] = "all",
) -> None:
    """List active alerts."""
    from ip_console.cli import now

    center = _center()
    alerts = center.all_alerts()
    current = now()
    shown = center.active_alerts(tab=tab, search=search, alert_type=type, status=status)

    print(
        f"{unread_count(alerts)} unread, {high_priority_count(alerts, current)} high priority, "
        f"{due_this_week_count(alerts, current)} due this week\n"
    )
    print(f"{len(shown)} alerts:\n")
    for alert in shown:
        marker = "●" if not alert.is_read else "○"
        due_str = f" (due {alert.due_date.date().isoformat()})" if alert.due_date else ""
        print(f"{marker} {alert.id} [{priority_of(alert, current)}] {alert.title}{due_str}")
        if alert.description:
            print(f"    {alert.description}")


@alert_app.command
def read(*alert_ids: str) -> None:
    """Mark alerts as read."""
    center = _center()
    for alert_id in alert_ids:
        center.mark_as_read(alert_id, True)
    print(f"Marked {len(alert_ids)} alert(s) as read")


@alert_app.command
def unread(*alert_ids: str) -> None:
    """Mark alerts as unread."""
    center = _center()
    for alert_id in alert_ids:
        center.mark_as_read(alert_id, False)
    print(f"Marked {len(alert_ids)} alert(s) as unread")


@alert_app.command
def dismiss(*alert_ids: str) -> None:
    """Dismiss alerts. Dismissed alerts are kept but no longer listed."""
    center = _center()
    for alert_id in alert_ids:
        center.dismiss(alert_id)
    print(f"Dismissed {len(alert_ids)} alert(s)")


@alert_app.command
def seed() -> None:
    """Add the sample alerts that are not stored yet."""
    created = _center().seed_sample_alerts()
    print(f"Seeded {len(created)} sample alert(s)")
