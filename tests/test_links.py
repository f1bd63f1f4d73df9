"""Tests for the cross-link graph."""

import pytest

from ip_console.errors import DuplicateLinkError, NotFoundError, SelfLinkError, StorageError
from ip_console.links import LinkGraph
from ip_console.models import EntityRef, EntityType, Identity
from ip_console.stores.local import LocalStore
from ip_console.timeline import ActivityTimeline


@pytest.fixture
def timeline(store: LocalStore, identity: Identity, clock) -> ActivityTimeline:
    return ActivityTimeline(store, identity, clock)


@pytest.fixture
def graph(store: LocalStore, identity: Identity, timeline: ActivityTimeline, clock) -> LinkGraph:
    return LinkGraph(store, identity, timeline=timeline, clock=clock)


def _create(store: LocalStore, entity_type: EntityType, **fields: str) -> EntityRef:
    row = store.insert(entity_type.collection, fields)
    return EntityRef(entity_type, row["id"])


def test_link_is_symmetric(graph: LinkGraph, store: LocalStore) -> None:
    """Test both endpoints see the link, resolving to the other side."""
    disclosure = _create(store, EntityType.DISCLOSURE, title="Quantum Algorithm")
    project = _create(store, EntityType.PROJECT, title="Smart Sensor")

    link = graph.link_entities(disclosure, project)

    from_disclosure = graph.get_linked_entities(disclosure)
    from_project = graph.get_linked_entities(project)
    assert [(linked.link.id, linked.counterpart) for linked in from_disclosure] == [(link.id, project)]
    assert [(linked.link.id, linked.counterpart) for linked in from_project] == [(link.id, disclosure)]
    assert from_project[0].counterpart_type == EntityType.DISCLOSURE
    assert from_project[0].counterpart_id == disclosure.id


def test_link_stamps_creator(graph: LinkGraph, store: LocalStore, clock) -> None:
    """Test links record who created them and when."""
    agreement = _create(store, EntityType.AGREEMENT, title="TechCorp License")
    startup = _create(store, EntityType.STARTUP, name="QuantumLeap")

    link = graph.link_entities(agreement, startup)

    assert link.created_by == "user-1"
    assert link.created_at == clock.now


def test_duplicate_link_rejected_in_either_order(graph: LinkGraph, store: LocalStore) -> None:
    """Test a pair can only be linked once, whichever side comes first."""
    a = _create(store, EntityType.DISCLOSURE, title="Quantum Algorithm")
    b = _create(store, EntityType.FILING, title="US Provisional")
    graph.link_entities(a, b)

    with pytest.raises(DuplicateLinkError):
        graph.link_entities(a, b)
    with pytest.raises(DuplicateLinkError):
        graph.link_entities(b, a)

    assert [linked.counterpart for linked in graph.get_linked_entities(a)] == [b]


def test_self_link_rejected(graph: LinkGraph, store: LocalStore) -> None:
    """Test an entity cannot link to itself."""
    project = _create(store, EntityType.PROJECT, title="Smart Sensor")
    with pytest.raises(SelfLinkError):
        graph.link_entities(project, EntityRef(EntityType.PROJECT, project.id))
    assert store.select("links") == []


def test_link_to_missing_record_rejected(graph: LinkGraph, store: LocalStore) -> None:
    """Test both endpoints must exist."""
    startup = _create(store, EntityType.STARTUP, name="QuantumLeap")

    with pytest.raises(NotFoundError):
        graph.link_entities(EntityRef(EntityType.PROJECT, "typo"), startup)
    with pytest.raises(NotFoundError):
        graph.link_entities(startup, EntityRef(EntityType.PROJECT, "typo"))
    assert store.select("links") == []


def test_same_type_links_resolve_counterpart(graph: LinkGraph, store: LocalStore) -> None:
    """Test links between two records of one type."""
    p1 = _create(store, EntityType.PROJECT, title="One")
    p2 = _create(store, EntityType.PROJECT, title="Two")
    p3 = _create(store, EntityType.PROJECT, title="Three")
    graph.link_entities(p1, p2)
    graph.link_entities(p3, p2)

    assert {linked.counterpart for linked in graph.get_linked_entities(p2)} == {p1, p3}
    assert [linked.counterpart for linked in graph.get_linked_entities(p1)] == [p2]


def test_unlinked_entity_has_no_links(graph: LinkGraph) -> None:
    """Test an entity without links yields an empty list."""
    assert graph.get_linked_entities(EntityRef(EntityType.INVENTOR, "i1")) == []


def test_unlink(graph: LinkGraph, store: LocalStore) -> None:
    """Test removing a link from either side."""
    a = _create(store, EntityType.DISCLOSURE, title="Quantum Algorithm")
    b = _create(store, EntityType.PROJECT, title="Smart Sensor")
    link = graph.link_entities(a, b)

    graph.unlink_entities(link.id)

    assert graph.get_linked_entities(a) == []
    assert graph.get_linked_entities(b) == []
    graph.link_entities(b, a)


def test_unlink_missing(graph: LinkGraph) -> None:
    """Test removing an unknown link."""
    with pytest.raises(NotFoundError):
        graph.unlink_entities("missing")


def test_link_and_unlink_logged_on_both_endpoints(
    graph: LinkGraph, store: LocalStore, timeline: ActivityTimeline
) -> None:
    """Test link activity appears on both records' timelines."""
    a = _create(store, EntityType.DISCLOSURE, title="Quantum Algorithm")
    b = _create(store, EntityType.TEAM_MEMBER, first_name="Grace", last_name="Hopper")
    link = graph.link_entities(a, b)
    graph.unlink_entities(link.id)

    for ref in (a, b):
        actions = [entry.action for entry in timeline.get_timeline(ref)]
        assert sorted(actions) == ["link_created", "link_removed"]
        assert all(entry.metadata == {"link_id": link.id} for entry in timeline.get_timeline(ref))


def test_link_not_kept_when_activity_fails(failing_store, identity: Identity, clock) -> None:
    """Test a link whose activity cannot be logged is not stored, so a retry succeeds."""
    graph = LinkGraph(failing_store, identity, clock=clock)
    project = _create(failing_store, EntityType.PROJECT, title="Smart Sensor")
    startup = _create(failing_store, EntityType.STARTUP, name="SensorCo")

    failing_store.failing_inserts.add("activity_logs")
    with pytest.raises(StorageError):
        graph.link_entities(project, startup)

    assert graph.get_linked_entities(project) == []
    assert failing_store.select("activity_logs") == []

    failing_store.failing_inserts.clear()
    link = graph.link_entities(project, startup)
    assert [linked.link.id for linked in graph.get_linked_entities(startup)] == [link.id]


def test_unlink_kept_when_delete_fails(failing_store, identity: Identity, clock) -> None:
    """Test a failed removal keeps the link and logs nothing."""
    graph = LinkGraph(failing_store, identity, clock=clock)
    project = _create(failing_store, EntityType.PROJECT, title="Smart Sensor")
    startup = _create(failing_store, EntityType.STARTUP, name="SensorCo")
    link = graph.link_entities(project, startup)

    failing_store.failing_deletes.add("links")
    with pytest.raises(StorageError):
        graph.unlink_entities(link.id)

    assert [linked.link.id for linked in graph.get_linked_entities(project)] == [link.id]
    actions = [row["action"] for row in failing_store.select("activity_logs")]
    assert sorted(actions) == ["link_created", "link_created"]


def test_resolve_linked_skips_deleted_records(graph: LinkGraph, store: LocalStore) -> None:
    """Test resolved links carry display names and skip records that are gone."""
    disclosure = _create(store, EntityType.DISCLOSURE, title="Quantum Algorithm")
    startup = _create(store, EntityType.STARTUP, name="QuantumLeap")
    inventor = _create(store, EntityType.INVENTOR, first_name="Ada", last_name="Lovelace")
    graph.link_entities(disclosure, startup)
    graph.link_entities(inventor, disclosure)
    store.delete(EntityType.STARTUP.collection, startup.id)

    resolved = graph.resolve_linked(disclosure)

    assert [(view.ref, view.display_name) for _, view in resolved] == [(inventor, "Ada Lovelace")]


def test_link_candidates(graph: LinkGraph, store: LocalStore) -> None:
    """Test candidates exclude the entity itself and its existing links."""
    project = _create(store, EntityType.PROJECT, title="Smart Sensor")
    other_project = _create(store, EntityType.PROJECT, title="Sensor Array")
    linked_startup = _create(store, EntityType.STARTUP, name="SensorCo")
    startup = _create(store, EntityType.STARTUP, name="QuantumLeap")
    graph.link_entities(project, linked_startup)

    candidates = {view.ref for view in graph.link_candidates(project)}
    assert candidates == {other_project, startup}

    startups = graph.link_candidates(project, entity_type=EntityType.STARTUP)
    assert [view.ref for view in startups] == [startup]

    searched = graph.link_candidates(project, search="  SENSOR ")
    assert [view.display_name for view in searched] == ["Sensor Array"]
