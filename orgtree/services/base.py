"""Shared contract for the three hierarchy storage strategies.

Each concrete engine owns the structural algorithms (create, move, delete,
ancestor/descendant queries). Everything that reads the ``nodes`` table
directly (lookup, listing, children, parent, search) and the unit-of-work
plumbing lives here so the three strategies behave identically at the seams.
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import MAX_NAME_COLUMN_LENGTH, HierarchyStrategy
from ..exceptions import (
    DatabaseError,
    NoParentError,
    ParentNodeNotFoundError,
    ValidationError,
)
from ..models import Node
from ..repositories.node_repository import NodeRepository
from ..schemas.node import NodeTree

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for "argument not supplied" where None is a meaningful value."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class Page(NamedTuple):
    """One slice of a node listing plus the size of the whole listing."""
    items: List[Node]
    total: int


def _slice(nodes: List[Node], skip: int, limit: Optional[int]) -> Page:
    end = None if limit is None else skip + limit
    return Page(nodes[skip:end], len(nodes))


class HierarchyEngine(ABC):
    """Tree operations over one storage strategy.

    Public methods:
        create_node       -- validated insert, optionally under a parent
        update_node       -- rename and/or move a subtree; rejects cycles
        delete_node       -- remove a node and its whole subtree
        get_node          -- lookup by id
        list_nodes        -- every node, ordered by id
        list_children     -- direct children of a node
        search_by_name    -- case-insensitive substring match
        get_parent        -- direct parent of a node
        list_descendants  -- whole subtree below a node
        list_ancestors    -- chain up to the root, nearest first
        get_tree          -- nested view of the full hierarchy

    ``children_page``, ``descendants_page`` and ``ancestors_page`` return the
    same listings one slice at a time together with their total size.

    Mutations run inside one transaction and are serialized per engine class
    within a process. Across processes, each mutation row-locks the nodes on
    the root paths it reads or rewrites (see ``_lock_paths``).
    """

    strategy: HierarchyStrategy

    # One lock per concrete class, created in __init_subclass__.
    _mutation_lock: threading.RLock

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._mutation_lock = threading.RLock()

    def __init__(self, db: Session, max_name_length: int):
        if not 1 <= max_name_length <= MAX_NAME_COLUMN_LENGTH:
            raise ValueError(f"max_name_length must be between 1 and {MAX_NAME_COLUMN_LENGTH}")
        self.db = db
        self.max_name_length = max_name_length
        self.node_repo = NodeRepository(db)

    # ------------------------------------------------------------------
    # Structural operations (strategy specific)
    # ------------------------------------------------------------------

    @abstractmethod
    def create_node(self, name: str, parent_id: Optional[int] = None) -> Node:
        """Create a node, optionally as a child of *parent_id*."""

    @abstractmethod
    def update_node(self, node_id: int, name: Optional[str] = None, parent_id=UNSET) -> Node:
        """Rename and/or re-parent a node.

        ``parent_id=UNSET`` keeps the current parent, ``None`` makes the
        node a root.
        """

    @abstractmethod
    def delete_node(self, node_id: int) -> None:
        """Delete a node together with its entire subtree."""

    @abstractmethod
    def list_descendants(self, node_id: int) -> List[Node]:
        """All nodes below *node_id*, excluding the node itself."""

    @abstractmethod
    def list_ancestors(self, node_id: int) -> List[Node]:
        """All nodes above *node_id*, nearest first."""

    # ------------------------------------------------------------------
    # Shared reads
    # ------------------------------------------------------------------

    def get_node(self, node_id: int) -> Node:
        return self.node_repo.get_by_id(node_id)

    def list_nodes(self, skip: int = 0, limit: Optional[int] = None) -> List[Node]:
        return self.node_repo.get_all(skip=skip, limit=limit)

    def list_children(self, parent_id: int) -> List[Node]:
        if not self.node_repo.exists(parent_id):
            raise ParentNodeNotFoundError(parent_id)
        return self.node_repo.get_children(parent_id)

    def children_page(self, parent_id: int, skip: int = 0, limit: Optional[int] = None) -> Page:
        if not self.node_repo.exists(parent_id):
            raise ParentNodeNotFoundError(parent_id)
        total = self.node_repo.count_children([parent_id]).get(parent_id, 0)
        return Page(self.node_repo.get_children(parent_id, skip=skip, limit=limit), total)

    def descendants_page(self, node_id: int, skip: int = 0, limit: Optional[int] = None) -> Page:
        return _slice(self.list_descendants(node_id), skip, limit)

    def ancestors_page(self, node_id: int, skip: int = 0, limit: Optional[int] = None) -> Page:
        """Ancestors nearest first, sliced; page 0 starts at the direct parent."""
        return _slice(self.list_ancestors(node_id), skip, limit)

    def search_by_name(self, substring: str, skip: int = 0, limit: Optional[int] = None) -> List[Node]:
        return self.node_repo.search_by_name(substring, skip=skip, limit=limit)

    def get_parent(self, node_id: int) -> Node:
        node = self.node_repo.get_by_id(node_id)
        if node.parent_id is None:
            raise NoParentError(node_id)
        parent = self.node_repo.get_by_id_optional(node.parent_id)
        if parent is None:
            raise ParentNodeNotFoundError(node.parent_id)
        return parent

    def child_counts(self, nodes: Iterable[Node]) -> Dict[int, int]:
        """Number of direct children for each node (0 for leaves)."""
        ids = [node.id for node in nodes]
        counts = self.node_repo.count_children(ids)
        return {node_id: counts.get(node_id, 0) for node_id in ids}

    def get_tree(self, max_depth: Optional[int] = None) -> List[NodeTree]:
        """Build the full hierarchy as nested NodeTree roots.

        Roots are at depth 1. With *max_depth*, nodes at that depth are
        returned without children; their ``sub_entities_count`` still reports
        how many children exist.
        """
        if max_depth is not None and max_depth < 1:
            raise ValidationError("max_depth must be at least 1", field="max_depth")

        children_by_parent: Dict[Optional[int], List[Node]] = {}
        for node in self.node_repo.get_all():
            children_by_parent.setdefault(node.parent_id, []).append(node)
        roots = children_by_parent.get(None, [])

        # Pre-order with an explicit stack, then build bottom-up so every
        # child exists before its parent is assembled.
        order: List[Tuple[Node, int]] = []
        stack = [(root, 1) for root in reversed(roots)]
        while stack:
            node, depth = stack.pop()
            order.append((node, depth))
            if max_depth is None or depth < max_depth:
                stack.extend(
                    (child, depth + 1)
                    for child in reversed(children_by_parent.get(node.id, []))
                )

        built: Dict[int, NodeTree] = {}
        for node, _ in reversed(order):
            kids = children_by_parent.get(node.id, [])
            built[node.id] = NodeTree(
                id=node.id,
                name=node.name,
                parent_id=node.parent_id,
                sub_entities_count=len(kids),
                children=[built[kid.id] for kid in kids if kid.id in built],
            )

        return [built[root.id] for root in roots]

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _validate_name(self, name) -> None:
        if name is None or not isinstance(name, str) or not name.strip():
            raise ValidationError("Node name must not be empty", field="name")
        if len(name) > self.max_name_length:
            raise ValidationError(
                f"Node name cannot be longer than {self.max_name_length} characters",
                field="name",
            )

    def _require_parent(self, parent_id: int) -> Node:
        parent = self.node_repo.get_by_id_optional(parent_id)
        if parent is None:
            raise ParentNodeNotFoundError(parent_id)
        return parent

    def _lock_paths(self, *node_ids: Optional[int]) -> None:
        """Row-lock each given node and all of its ancestors.

        Any two mutations whose subtrees or parent chains overlap share at
        least one node on these root paths, so the second blocks until the
        first commits. ``None`` entries (root level) are skipped.
        """
        ids = set()
        for node_id in node_ids:
            if node_id is None:
                continue
            ids.add(node_id)
            ids.update(ancestor.id for ancestor in self.list_ancestors(node_id))
        self.node_repo.lock_rows(ids)

    @contextmanager
    def _unit_of_work(self):
        """Serialize a structural mutation and make it atomic.

        Commits when the block finishes; on any error the session is rolled
        back so no partial closure rebuild or path rewrite becomes visible.
        """
        with self._mutation_lock:
            try:
                yield
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    "Hierarchy mutation failed at the database layer",
                    extra={"strategy": self.strategy.value},
                    exc_info=True,
                )
                raise DatabaseError("Hierarchy update failed", original_error=e) from e
            except Exception:
                self.db.rollback()
                raise
