"""Alert priority derivation, filtering and the two alert mutations."""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any, Literal

import structlog

from ip_console.checklist import days_until
from ip_console.errors import ValidationError
from ip_console.models import ALERT_TYPES, ALERTS, Alert, EntityRef, Identity, format_timestamp, utcnow
from ip_console.store import Store

logger = structlog.get_logger()

Priority = Literal["high", "medium", "low"]

TABS = ("all", "deadlines", "reviews", "updates")
STATUSES = ("all", "unread", "read")
UPDATE_TYPES = frozenset({"comment_reply", "link_deleted"})


def priority_of(alert: Alert, now: datetime) -> Priority:
    """Derive an alert's priority from its due date.

    Never stored: the answer changes as ``now`` moves.
    """
    if alert.due_date is None:
        return "low"

    diff_days = days_until(alert.due_date, now)
    if diff_days <= 7:
        return "high"
    if diff_days <= 30:
        return "medium"
    return "low"


def is_deadline(alert: Alert) -> bool:
    return alert.due_date is not None


def is_review(alert: Alert) -> bool:
    return alert.type == "new_disclosure"


def is_update(alert: Alert) -> bool:
    return alert.type in UPDATE_TYPES


TAB_PREDICATES: dict[str, Callable[[Alert], bool]] = {
    "all": lambda alert: True,
    "deadlines": is_deadline,
    "reviews": is_review,
    "updates": is_update,
}


def filter_alerts(
    alerts: Iterable[Alert],
    tab: str = "all",
    search: str | None = None,
    alert_type: str | None = None,
    status: str = "all",
) -> list[Alert]:
    """Select the active alerts shown under a tab and the given filters.

    Dismissed alerts are dropped before any other filter is looked at. Tabs
    overlap, so one alert can show under several of them.
    """
    if tab not in TAB_PREDICATES:
        raise ValidationError(f"Unknown alert tab: '{tab}'. Expected one of: {', '.join(TABS)}")
    if status not in STATUSES:
        raise ValidationError(f"Unknown alert status: '{status}'. Expected one of: {', '.join(STATUSES)}")

    active = [alert for alert in alerts if not alert.is_dismissed]

    in_tab = TAB_PREDICATES[tab]
    needle = search.strip().lower() if search else ""

    selected = []
    for alert in active:
        if not in_tab(alert):
            continue
        if alert_type and alert_type != "all" and alert.type != alert_type:
            continue
        if status == "unread" and alert.is_read:
            continue
        if status == "read" and not alert.is_read:
            continue
        if needle and needle not in alert.title.lower() and needle not in alert.description.lower():
            continue
        selected.append(alert)
    return selected


def unread_count(alerts: Iterable[Alert]) -> int:
    return sum(1 for alert in alerts if not alert.is_read and not alert.is_dismissed)


def high_priority_count(alerts: Iterable[Alert], now: datetime) -> int:
    return sum(1 for alert in alerts if not alert.is_dismissed and priority_of(alert, now) == "high")


def due_this_week_count(alerts: Iterable[Alert], now: datetime) -> int:
    """Active alerts due between now and seven days out, inclusive."""
    return sum(
        1
        for alert in alerts
        if not alert.is_dismissed and alert.due_date is not None and 0 <= days_until(alert.due_date, now) <= 7
    )


def sample_alerts(now: datetime) -> list[dict[str, Any]]:
    """Sample alerts used to populate an empty workspace."""
    return [
        {
            "type": "agreement_expiry",
            "title": "Agreement Expiring",
            "description": "Licensing Agreement with TechCorp expires in 30 days",
            "entity_type": "agreement",
            "entity_id": "agreement_1",
            "due_date": format_timestamp(now + timedelta(days=30)),
            "is_read": False,
        },
        {
            "type": "project_milestone",
            "title": "Project Milestone Due",
            "description": "Technology assessment milestone due for Smart Sensor Project",
            "entity_type": "project",
            "entity_id": "project_1",
            "due_date": format_timestamp(now + timedelta(days=14)),
            "is_read": False,
        },
        {
            "type": "new_disclosure",
            "title": "New Disclosure Submitted",
            "description": "INV-2025-0025 - Quantum Computing Algorithm submitted for review",
            "entity_type": "disclosure",
            "entity_id": "disclosure_1",
            "due_date": None,
            "is_read": True,
        },
        {
            "type": "checklist_due",
            "title": "Checklist Item Due",
            "description": "Market research completion due for Project Alpha",
            "entity_type": "project",
            "entity_id": "project_2",
            "due_date": format_timestamp(now + timedelta(days=7)),
            "is_read": False,
        },
    ]


def _content_key(row: dict[str, Any]) -> tuple[Any, ...]:
    return (row.get("type"), row.get("title"), row.get("entity_type"), row.get("entity_id"))


class AlertCenter:
    """Stored alerts plus the read and dismiss mutations."""

    def __init__(self, store: Store, identity: Identity, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.identity = identity
        self.clock = clock

    def all_alerts(self) -> list[Alert]:
        """Every stored alert, dismissed ones included, newest first."""
        rows = self.store.select(ALERTS, order_by="created_at", descending=True)
        return [Alert.from_row(row) for row in rows]

    def active_alerts(
        self,
        tab: str = "all",
        search: str | None = None,
        alert_type: str | None = None,
        status: str = "all",
    ) -> list[Alert]:
        return filter_alerts(self.all_alerts(), tab=tab, search=search, alert_type=alert_type, status=status)

    def create_alert(
        self,
        alert_type: str,
        title: str,
        description: str = "",
        ref: EntityRef | None = None,
        due_date: datetime | None = None,
        recipient: str | None = None,
    ) -> Alert:
        """Store a new unread alert for ``recipient``, the current user by default.

        Raises:
            ValidationError: If the type is unknown or the title is empty
        """
        if alert_type not in ALERT_TYPES:
            raise ValidationError(f"Unknown alert type: '{alert_type}'")
        if not title or not title.strip():
            raise ValidationError("Alert title is required")

        row = self.store.insert(
            ALERTS,
            {
                "type": alert_type,
                "title": title.strip(),
                "description": description,
                "entity_type": ref.type.value if ref else None,
                "entity_id": ref.id if ref else None,
                "due_date": format_timestamp(due_date),
                "is_read": False,
                "is_dismissed": False,
                "user_id": recipient or self.identity.id,
                "created_at": format_timestamp(self.clock()),
            },
        )
        alert = Alert.from_row(row)
        logger.info("Alert created", alert_id=alert.id, alert_type=alert_type)
        return alert

    def mark_as_read(self, alert_id: str, is_read: bool = True) -> Alert:
        """Set an alert's read flag.

        Raises:
            NotFoundError: If the alert does not exist
        """
        alert = Alert.from_row(self.store.update(ALERTS, alert_id, {"is_read": is_read}))
        logger.info("Alert read state changed", alert_id=alert_id, is_read=is_read)
        return alert

    def dismiss(self, alert_id: str) -> Alert:
        """Dismiss an alert for good. The record is kept but never shown as active again.

        Raises:
            NotFoundError: If the alert does not exist
        """
        alert = Alert.from_row(self.store.update(ALERTS, alert_id, {"is_dismissed": True}))
        logger.info("Alert dismissed", alert_id=alert_id)
        return alert

    def seed_sample_alerts(self, now: datetime | None = None) -> list[Alert]:
        """Insert the sample alerts that are not stored yet.

        Alerts are matched on type, title and entity, so running the seed again
        (even on a later day) adds nothing.
        """
        now = now or self.clock()
        existing = {_content_key(row) for row in self.store.select(ALERTS)}

        created = []
        for sample in sample_alerts(now):
            if _content_key(sample) in existing:
                continue
            row = self.store.insert(
                ALERTS,
                {
                    **sample,
                    "is_dismissed": False,
                    "user_id": self.identity.id,
                    "created_at": format_timestamp(now),
                },
            )
            created.append(Alert.from_row(row))

        logger.info("Sample alerts seeded", created=len(created), skipped=len(sample_alerts(now)) - len(created))
        return created
