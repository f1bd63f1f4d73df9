"""Record commands for the IP console CLI."""

from cyclopts import App

from ip_console.models import EntityRef, EntityType
from ip_console.records import RecordService
from ip_console.store import display_name

records_app = App(name="records", help="Manage disclosures, filings, projects and other records")


def _service() -> RecordService:
    from ip_console.cli import get_identity, get_store

    return RecordService(get_store(), get_identity())


@records_app.command(name="list")
def list_records(entity_type: str, search: str | None = None) -> None:
    """List records of one type, newest first."""
    records = _service().list_records(EntityType.parse(entity_type), search=search)

    print(f"Found {len(records)} {entity_type} record(s):\n")
    for record in records:
        status = record.get("status") or record.get("stage")
        status_str = f" [{status}]" if status else ""
        print(f"  {record['id']}: {display_name(record)}{status_str}")


@records_app.command
def show(ref: str) -> None:
    """Show one record, written as type:id."""
    view = _service().view(EntityRef.parse(ref))

    print(f"{view.ref.type.label}: {view.display_name}")
    for key, value in view.record.items():
        if value is None or value == "" or value == []:
            continue
        print(f"  {key}: {value}")


@records_app.command
def create(entity_type: str, *fields: str) -> None:
    """Create a record from key=value fields."""
    from ip_console.cli import parse_fields

    record = _service().create(EntityType.parse(entity_type), parse_fields(fields))
    print(f"Created {entity_type} {record['id']}: {display_name(record)}")


@records_app.command
def update(ref: str, *fields: str) -> None:
    """Update a record from key=value fields."""
    from ip_console.cli import parse_fields

    record = _service().update(EntityRef.parse(ref), parse_fields(fields))
    print(f"Updated {ref}: {display_name(record)}")


@records_app.command
def delete(*refs: str) -> None:
    """Delete one or more records."""
    service = _service()
    for ref in refs:
        service.delete(EntityRef.parse(ref))
    print(f"Deleted {len(refs)} record(s)")


@records_app.command
def stats() -> None:
    """Show dashboard counts."""
    counts = _service().dashboard_stats()
    print(f"Active disclosures: {counts['active_disclosures']}")
    print(f"Active projects:    {counts['active_projects']}")
    print(f"Startups:           {counts['startups']}")
