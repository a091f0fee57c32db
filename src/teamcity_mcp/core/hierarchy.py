"""Cycle-safe traversal of the TeamCity project tree.

Projects form a tree rooted at ``_Root`` but the server's view can change
between calls and occasionally contains re-entrant links. Three walks are
offered:

- ``ancestors``: parent links upward, root first
- ``descendants``: breadth-first, flat list with levels; re-entrant links
  are silently skipped
- ``subtree``: breadth-first tree; a node that is its own ancestor raises
  ``StructuralError``

Every fetch goes through the shared ``TransportInvoker``. Nothing is cached
between calls.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Set, Tuple

from teamcity_mcp.core.errors.hierarchy import EntityParseError, StructuralError
from teamcity_mcp.core.errors.teamcity import ClientError, NotFoundError
from teamcity_mcp.core.resilience.invoker import TransportInvoker

logger = logging.getLogger(__name__)

ROOT_PROJECT_ID = "_Root"
ROOT_PROJECT_NAME = "<Root project>"
DEFAULT_MAX_DEPTH = 5


@dataclass(frozen=True)
class EntityRecord:
    """One project as far as traversal cares."""

    id: str
    name: str
    parent_id: Optional[str] = None
    child_ids: Tuple[str, ...] = ()
    archived: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "archived": self.archived,
        }


@dataclass(frozen=True)
class DescendantEntry:
    id: str
    name: str
    level: int
    parent_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "level": self.level, "parent_id": self.parent_id}


@dataclass(frozen=True)
class DescendantsResult:
    entries: Tuple[DescendantEntry, ...]
    max_depth_reached: bool


@dataclass
class HierarchyNode:
    """A node of a subtree built by one ``subtree`` call.

    ``path`` runs from the subtree root to this node, so
    ``len(path) == level + 1``. ``truncated`` marks nodes whose children
    were not expanded because the depth bound was hit.
    """

    id: str
    name: str
    level: int
    path: Tuple[str, ...]
    children: List["HierarchyNode"] = field(default_factory=list)
    truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "children": [child.to_dict() for child in self.children],
        }
        if self.truncated:
            result["truncated"] = True
        return result

    def max_depth_reached(self) -> bool:
        return self.truncated or any(child.max_depth_reached() for child in self.children)


def parse_entity(payload: Any, requested_id: str) -> EntityRecord:
    """Parse a TeamCity project payload.

    Reads ``id``, ``name``, ``parentProjectId``, ``archived`` and the
    child ids under ``projects.project``.

    Raises:
        EntityParseError: The payload is not a JSON object.
    """
    if not isinstance(payload, Mapping):
        raise EntityParseError(
            f"Expected a JSON object for project '{requested_id}', got {type(payload).__name__}",
            entity_id=requested_id,
            payload_type=type(payload).__name__,
        )

    entity_id = payload.get("id") or requested_id
    name = payload.get("name") or f"Unknown Project {entity_id}"
    parent_id = payload.get("parentProjectId") or None

    children = payload.get("projects")
    raw_children: Any = children.get("project") if isinstance(children, Mapping) else None
    if isinstance(raw_children, Mapping):
        raw_children = [raw_children]
    child_ids = tuple(
        str(child["id"])
        for child in raw_children or ()
        if isinstance(child, Mapping) and child.get("id")
    )

    return EntityRecord(
        id=str(entity_id),
        name=str(name),
        parent_id=str(parent_id) if parent_id else None,
        child_ids=child_ids,
        archived=bool(payload.get("archived", False)),
    )


EntityFetcher = Callable[[str], Awaitable[Any]]


class HierarchyTraversal:
    """Ancestor, descendant, and subtree walks over parent/child links."""

    def __init__(
        self,
        invoker: TransportInvoker,
        fetch: EntityFetcher,
        *,
        root_id: str = ROOT_PROJECT_ID,
        default_max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.invoker = invoker
        self._fetch = fetch
        self.root_id = root_id
        self.default_max_depth = default_max_depth

    @classmethod
    def for_projects(cls, client: Any, invoker: TransportInvoker, settings: Any = None) -> "HierarchyTraversal":
        """Build a traversal over ``TeamCityClient.get_project``."""
        kwargs: Dict[str, Any] = {}
        if settings is not None:
            kwargs = {"root_id": settings.root_id, "default_max_depth": settings.default_max_depth}
        return cls(invoker, client.get_project, **kwargs)

    def root_record(self) -> EntityRecord:
        return EntityRecord(id=self.root_id, name=ROOT_PROJECT_NAME)

    async def fetch_entity(self, entity_id: str) -> EntityRecord:
        payload = await self.invoker.invoke(
            lambda: self._fetch(entity_id),
            operation_name="project.get",
        )
        return parse_entity(payload, entity_id)

    async def ancestors(self, entity_id: str) -> List[EntityRecord]:
        """Return the chain from the root down to ``entity_id``.

        The root sentinel is synthesized, not fetched. If a parent cannot
        be found, or a parent link loops, the chain fetched so far (always
        ending with ``entity_id``) is returned without the root.

        Raises:
            NotFoundError: ``entity_id`` itself does not exist.
        """
        if entity_id == self.root_id:
            return [self.root_record()]

        target = await self.fetch_entity(entity_id)
        chain: List[EntityRecord] = [target]
        visited: Set[str] = {target.id}
        parent_id = target.parent_id or self.root_id

        while parent_id != self.root_id:
            if parent_id in visited:
                logger.warning("Parent loop at '%s' while walking ancestors of '%s'", parent_id, entity_id)
                return list(reversed(chain))
            visited.add(parent_id)

            try:
                parent = await self.fetch_entity(parent_id)
            except NotFoundError:
                logger.warning(
                    "Parent '%s' of '%s' not found; returning partial ancestor chain",
                    parent_id,
                    chain[-1].id,
                )
                return list(reversed(chain))

            chain.append(parent)
            parent_id = parent.parent_id or self.root_id

        chain.append(self.root_record())
        return list(reversed(chain))

    async def descendants(self, entity_id: str, max_depth: Optional[int] = None) -> DescendantsResult:
        """Breadth-first list of descendants with their levels.

        An id already visited is never expanded again, which bounds the walk
        on cyclic graphs. The start node is not part of the result.
        Children the caller cannot access are skipped with a warning.

        Raises:
            NotFoundError: ``entity_id`` itself does not exist.
        """
        depth_limit = self.default_max_depth if max_depth is None else max(0, max_depth)
        start = await self.fetch_entity(entity_id)

        visited: Set[str] = {start.id}
        entries: List[DescendantEntry] = []
        queue: Deque[Tuple[EntityRecord, int]] = deque([(start, 0)])
        max_depth_reached = False

        while queue:
            record, level = queue.popleft()
            if level >= depth_limit:
                if any(child_id not in visited for child_id in record.child_ids):
                    max_depth_reached = True
                continue

            for child_id in record.child_ids:
                if child_id in visited:
                    continue
                visited.add(child_id)

                child = await self._fetch_child(child_id, record.id)
                if child is None:
                    continue
                entries.append(DescendantEntry(child.id, child.name, level + 1, record.id))
                queue.append((child, level + 1))

        return DescendantsResult(entries=tuple(entries), max_depth_reached=max_depth_reached)

    async def subtree(self, entity_id: str, max_depth: Optional[int] = None) -> HierarchyNode:
        """Build the tree below ``entity_id`` breadth-first.

        A node reachable along two different paths appears under both
        parents; its record is fetched once per call.

        Raises:
            StructuralError: A child id is already on its own root-to-node path.
            NotFoundError: ``entity_id`` itself does not exist.
        """
        depth_limit = self.default_max_depth if max_depth is None else max(0, max_depth)
        fetched: Dict[str, Optional[EntityRecord]] = {}

        start = await self.fetch_entity(entity_id)
        fetched[start.id] = start
        root = HierarchyNode(id=start.id, name=start.name, level=0, path=(start.id,))
        queue: Deque[Tuple[HierarchyNode, EntityRecord]] = deque([(root, start)])

        while queue:
            node, record = queue.popleft()
            if node.level >= depth_limit:
                node.truncated = bool(record.child_ids)
                continue

            for child_id in record.child_ids:
                if child_id in node.path:
                    raise StructuralError(child_id, node.path + (child_id,))

                if child_id not in fetched:
                    fetched[child_id] = await self._fetch_child(child_id, record.id)
                child = fetched[child_id]
                if child is None:
                    continue

                child_node = HierarchyNode(
                    id=child.id,
                    name=child.name,
                    level=node.level + 1,
                    path=node.path + (child.id,),
                )
                node.children.append(child_node)
                queue.append((child_node, child))

        return root

    async def _fetch_child(self, child_id: str, parent_id: str) -> Optional[EntityRecord]:
        try:
            return await self.fetch_entity(child_id)
        except ClientError as exc:
            logger.warning("Could not access child project '%s' of '%s': %s", child_id, parent_id, exc)
            return None
