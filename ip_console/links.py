"""Cross-link graph between records of any entity type."""

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from ip_console.errors import DuplicateLinkError, NotFoundError, SelfLinkError, StorageError
from ip_console.models import (
    LINKS,
    ActivityLogEntry,
    EntityRef,
    EntityType,
    EntityView,
    Identity,
    Link,
    LinkedEntity,
    format_timestamp,
    utcnow,
)
from ip_console.store import Store, display_name
from ip_console.timeline import ActivityTimeline, retract

logger = structlog.get_logger()

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LinkGraph:
    """Symmetric many-to-many links between entities.

    Links are stored with a "from" and a "to" side, but are undirected: an
    entity's links are those where it appears on either side, and each is
    reported together with the entity on the other side.
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
        self.clock = clock

    def _links_of(self, ref: EntityRef) -> list[Link]:
        # Two indexed lookups, one per side, merged by link id
        rows = self.store.select(LINKS, filters={"from_entity_type": ref.type.value, "from_entity_id": ref.id})
        rows += self.store.select(LINKS, filters={"to_entity_type": ref.type.value, "to_entity_id": ref.id})

        links: dict[str, Link] = {}
        for row in rows:
            link = Link.from_row(row)
            if link.involves(ref):
                links.setdefault(link.id, link)
        return sorted(links.values(), key=lambda link: link.created_at or EPOCH)

    def link_entities(self, a: EntityRef, b: EntityRef) -> Link:
        """Link two distinct, existing, not yet linked entities.

        The link and its activity entries on both endpoints are stored
        together: if any write fails, nothing is kept.

        Raises:
            SelfLinkError: If both references denote the same entity
            NotFoundError: If either entity does not exist
            DuplicateLinkError: If the unordered pair is already linked
            StorageError: If the link or its activity could not be stored
        """
        if a == b:
            raise SelfLinkError(f"Cannot link {a} to itself")

        for ref in (a, b):
            self.store.get(ref.type.collection, ref.id)

        if any(link.connects(a, b) for link in self._links_of(a)):
            raise DuplicateLinkError(f"{a} is already linked to {b}")

        row = self.store.insert(
            LINKS,
            {
                "from_entity_type": a.type.value,
                "from_entity_id": a.id,
                "to_entity_type": b.type.value,
                "to_entity_id": b.id,
                "created_by": self.identity.id,
                "user_id": self.identity.id,
                "created_at": format_timestamp(self.clock()),
            },
        )
        link = Link.from_row(row)

        metadata = {"link_id": link.id}
        logged: list[ActivityLogEntry] = []
        try:
            for ref, other in ((a, b), (b, a)):
                logged.append(
                    self.timeline.record_activity(
                        ref, "link_created", f"Linked to {other.type.label.lower()} {other.id}", metadata
                    )
                )
        except StorageError:
            logger.error("Link activity not stored, removing link", link_id=link.id)
            retract(self.store, logged)
            self.store.delete(LINKS, link.id)
            raise

        logger.info("Entities linked", link_id=link.id, source=str(a), target=str(b))
        return link

    def unlink_entities(self, link_id: str) -> Link:
        """Remove a link and log the removal on both endpoints.

        Raises:
            NotFoundError: If no link has this ID
            StorageError: If the removal could not be stored; the link is kept
        """
        link = Link.from_row(self.store.get(LINKS, link_id))

        metadata = {"link_id": link.id}
        logged: list[ActivityLogEntry] = []
        try:
            for ref in (link.from_ref, link.to_ref):
                other = link.counterpart_of(ref)
                logged.append(
                    self.timeline.record_activity(
                        ref, "link_removed", f"Unlinked from {other.type.label.lower()} {other.id}", metadata
                    )
                )
            self.store.delete(LINKS, link_id)
        except StorageError:
            logger.error("Link removal not stored", link_id=link_id)
            retract(self.store, logged)
            raise

        logger.info("Link removed", link_id=link_id, source=str(link.from_ref), target=str(link.to_ref))
        return link

    def get_linked_entities(self, ref: EntityRef) -> list[LinkedEntity]:
        """Return every link of ``ref`` with its counterpart resolved.

        An entity without links yields an empty list.
        """
        linked = [LinkedEntity(link=link, counterpart=link.counterpart_of(ref)) for link in self._links_of(ref)]
        logger.debug("Linked entities fetched", ref=str(ref), count=len(linked))
        return linked

    def resolve_linked(self, ref: EntityRef) -> list[tuple[LinkedEntity, EntityView]]:
        """Like :meth:`get_linked_entities`, joined with each counterpart's record.

        Links pointing at records that no longer exist are skipped.
        """
        resolved = []
        for linked in self.get_linked_entities(ref):
            try:
                resolved.append((linked, self.store.resolve(linked.counterpart)))
            except NotFoundError:
                logger.warning("Linked entity no longer exists", link_id=linked.link.id, ref=str(linked.counterpart))
        return resolved

    def link_candidates(
        self,
        ref: EntityRef,
        entity_type: EntityType | None = None,
        search: str | None = None,
    ) -> list[EntityView]:
        """Entities that ``ref`` could be linked to.

        Excludes ``ref`` itself and everything already linked to it, and
        optionally narrows to one type and a case-insensitive name search.
        """
        excluded = {linked.counterpart for linked in self.get_linked_entities(ref)}
        excluded.add(ref)
        needle = search.strip().lower() if search else ""

        candidates = []
        for candidate_type in [entity_type] if entity_type else list(EntityType):
            for row in self.store.select(candidate_type.collection, order_by="created_at", descending=True):
                candidate = EntityRef(candidate_type, str(row["id"]))
                if candidate in excluded:
                    continue
                view = EntityView(ref=candidate, display_name=display_name(row), record=row)
                if needle and needle not in view.display_name.lower():
                    continue
                candidates.append(view)

        logger.debug("Link candidates listed", ref=str(ref), entity_type=entity_type, count=len(candidates))
        return candidates
