"""CLI for the IP console."""

import sys
from datetime import date, datetime
from typing import Annotated, Any, Literal

import structlog
import yaml
from cyclopts import App, Parameter

from ip_console.alert_commands import alert_app
from ip_console.checklist_commands import checklist_app
from ip_console.config import get_config
from ip_console.config_commands import config_app
from ip_console.errors import ConsoleError
from ip_console.link_commands import link_app
from ip_console.models import Identity
from ip_console.note_commands import comment_app, note_app
from ip_console.record_commands import records_app
from ip_console.store import Store
from ip_console.stores import LocalStore, NotionStore
from ip_console.timeline_commands import timeline_app

logger = structlog.get_logger()

app = App(
    help="IP Console - track disclosures, filings, agreements and startups",
)

app.command(records_app)
app.command(link_app)
app.command(timeline_app)
app.command(checklist_app)
app.command(alert_app)
app.command(note_app)
app.command(comment_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_store() -> Store:
    """Get the configured record store."""
    config = get_config()
    store_type = config.get("store", "local")

    if store_type == "local":
        path = config.get("local.path") or str(config.config_dir / "records.yaml")
        return LocalStore(path=path)
    elif store_type == "notion":
        token = config.get("notion.token")
        databases = config.notion_databases()
        if not token:
            raise ValueError(
                "Notion token not configured. Set it using:\n"
                "  ip-console config set notion.token <token>\n"
                "  ip-console config set notion.database.<collection> <database-id>"
            )
        return NotionStore(token=token, databases=databases)
    else:
        raise ValueError(f"Unknown store: {store_type}")


def get_identity() -> Identity:
    """Get the configured current user."""
    return get_config().identity()


def now() -> datetime:
    """Current time in the configured timezone."""
    return datetime.now(get_config().timezone())


def parse_fields(assignments: tuple[str, ...]) -> dict[str, Any]:
    """Parse ``key=value`` arguments, reading each value as YAML.

    ``trl=4`` gives an int, ``tags=[ai, sensors]`` a list and dates are kept
    as ISO strings.
    """
    fields: dict[str, Any] = {}
    for assignment in assignments:
        if "=" not in assignment:
            raise ValueError(f"Expected key=value, got '{assignment}'")
        key, raw = assignment.split("=", 1)
        value = yaml.safe_load(raw) if raw.strip() else None
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        fields[key.strip()] = value
    return fields


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    try:
        app(tokens)
    except (ConsoleError, ValueError) as e:
        logger.debug("Command failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    app.meta()
