"""Link management commands for the IP console CLI."""

from cyclopts import App

from ip_console.links import LinkGraph
from ip_console.models import EntityRef, EntityType

link_app = App(name="link", help="Manage links between records")


def _graph() -> LinkGraph:
    from ip_console.cli import get_identity, get_store

    return LinkGraph(get_store(), get_identity())


@link_app.command
def add(source: str, *targets: str) -> None:
    """Link a record to one or more other records (all written as type:id)."""
    graph = _graph()
    source_ref = EntityRef.parse(source)
    for target in targets:
        link = graph.link_entities(source_ref, EntityRef.parse(target))
        print(f"Linked {source} <-> {target} ({link.id})")


@link_app.command
def remove(*link_ids: str) -> None:
    """Remove links by ID."""
    graph = _graph()
    for link_id in link_ids:
        graph.unlink_entities(link_id)
    print(f"Removed {len(link_ids)} link(s)")


@link_app.command(name="list")
def list_links(ref: str) -> None:
    """List the records linked to a record."""
    entity = EntityRef.parse(ref)
    resolved = _graph().resolve_linked(entity)

    if not resolved:
        print(f"No links found for {ref}")
        return

    print(f"Links for {ref}:\n")
    for linked, view in resolved:
        print(f"  {linked.link.id}  {view.ref.type.label}: {view.display_name} ({view.ref})")


@link_app.command
def candidates(ref: str, type: str | None = None, search: str | None = None) -> None:
    """List records that could be linked to a record."""
    entity_type = EntityType.parse(type) if type else None
    views = _graph().link_candidates(EntityRef.parse(ref), entity_type=entity_type, search=search)

    if not views:
        print("No records available to link")
        return

    for view in views:
        print(f"  {view.ref}  {view.display_name}")
