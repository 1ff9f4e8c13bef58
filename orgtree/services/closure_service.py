"""Closure-table hierarchy: every (ancestor, descendant, distance) pair is stored.

Ancestor and descendant queries are a single indexed lookup. The price is
paid on writes: inserting a node copies its parent's ancestor chain, and
moving a subtree rebuilds the rows of every node inside it.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from ..core.config import HierarchyStrategy
from ..exceptions import (
    CircularDependencyError,
    DataIntegrityError,
    ParentNodeNotFoundError,
)
from ..models import Node, NodeClosure
from ..repositories.closure_repository import ClosureRepository
from .base import HierarchyEngine, UNSET

logger = logging.getLogger(__name__)

ClosureRow = Tuple[int, int, int]  # (ancestor_id, descendant_id, distance)


class ClosureEngine(HierarchyEngine):
    """Closure-table storage.

    The closure rows are the source of truth for ancestry; ``parent_id`` on
    the node row is kept in step so children and parent lookups stay cheap.
    """

    strategy = HierarchyStrategy.CLOSURE

    def __init__(self, db, max_name_length: int):
        super().__init__(db, max_name_length)
        self.closure_repo = ClosureRepository(db)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_node(self, name: str, parent_id: Optional[int] = None) -> Node:
        self._validate_name(name)

        with self._unit_of_work():
            if parent_id is not None:
                self._require_parent(parent_id)
            self._lock_paths(parent_id)

            node = self.node_repo.create(name, parent_id=parent_id)
            rows: Set[ClosureRow] = {(node.id, node.id, 0)}

            if parent_id is not None:
                parent_chain = self.closure_repo.get_by_descendant(parent_id)
                if not parent_chain:
                    # Parent row exists but has no closure rows: the insert
                    # above is discarded by the rollback in _unit_of_work.
                    logger.error(
                        "Parent has no closure rows",
                        extra={"parent_id": parent_id, "strategy": self.strategy.value},
                    )
                    raise ParentNodeNotFoundError(parent_id)
                rows.update(
                    (entry.ancestor_id, node.id, entry.distance + 1)
                    for entry in parent_chain
                )

            self.closure_repo.add_all(rows)

        logger.info(
            "Created node",
            extra={"node_id": node.id, "parent_id": parent_id, "strategy": self.strategy.value},
        )
        return node

    def update_node(self, node_id: int, name: Optional[str] = None, parent_id=UNSET) -> Node:
        if name is not None:
            self._validate_name(name)

        with self._unit_of_work():
            node = self.node_repo.get_by_id(node_id)

            if parent_id is not UNSET and parent_id != node.parent_id:
                if parent_id is not None:
                    self._require_parent(parent_id)
                self._lock_paths(node_id, parent_id)
                if parent_id is not None and self._is_ancestor(node_id, parent_id):
                    raise CircularDependencyError(node_id, parent_id)
                self._rebuild_subtree(node_id, parent_id)
                node.parent_id = parent_id
            elif parent_id is not UNSET:
                logger.debug("Parent unchanged, skipping closure rebuild", extra={"node_id": node_id})

            if name is not None:
                node.name = name
            self.db.flush()

        logger.info(
            "Updated node",
            extra={"node_id": node_id, "parent_id": node.parent_id, "strategy": self.strategy.value},
        )
        return node

    def delete_node(self, node_id: int) -> None:
        with self._unit_of_work():
            node = self.node_repo.get_by_id(node_id)
            self._lock_paths(node_id)

            if node.parent_id is not None and self._is_ancestor(node_id, node.parent_id):
                raise CircularDependencyError(node_id, node.parent_id)

            subtree = self.closure_repo.get_by_ancestor(node_id)
            if not any(entry.descendant_id == node_id for entry in subtree):
                raise DataIntegrityError(
                    f"Node {node_id} has no self-closure row", node_id=node_id
                )

            # Leaves first: deepest rows come first, the node itself (distance 0) last.
            ordered_ids = [
                entry.descendant_id
                for entry in sorted(subtree, key=lambda e: (-e.distance, e.descendant_id))
            ]
            self.closure_repo.delete_touching(ordered_ids)
            removed = self.node_repo.delete_many(ordered_ids)

        logger.info(
            "Deleted subtree",
            extra={"node_id": node_id, "removed": removed, "strategy": self.strategy.value},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_descendants(self, node_id: int) -> List[Node]:
        self.node_repo.get_by_id(node_id)
        entries = [
            e for e in self.closure_repo.get_by_ancestor(node_id)
            if e.descendant_id != node_id
        ]
        return self._resolve([e.descendant_id for e in entries])

    def list_ancestors(self, node_id: int) -> List[Node]:
        self.node_repo.get_by_id(node_id)
        entries = [
            e for e in self.closure_repo.get_by_descendant(node_id)
            if e.ancestor_id != node_id
        ]
        return self._resolve([e.ancestor_id for e in entries])

    def closure_rows(self, node_id: int) -> List[NodeClosure]:
        """Raw subtree rows for *node_id* (self-row included), for diagnostics."""
        return self.closure_repo.get_by_ancestor(node_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_ancestor(self, candidate_id: int, node_id: int) -> bool:
        """True if *candidate_id* is *node_id* or one of its ancestors."""
        return any(
            entry.ancestor_id == candidate_id
            for entry in self.closure_repo.get_by_descendant(node_id)
        )

    def _rebuild_subtree(self, node_id: int, new_parent_id: Optional[int]) -> None:
        """Recompute closure rows for every node in the subtree of *node_id*.

        All rows whose descendant lies in the subtree are dropped, which also
        discards the rows linking the subtree to its old ancestors. The rows
        internal to the subtree are captured first and written back
        unchanged; the new ancestor chain is then joined onto every subtree
        member.
        """
        subtree = self.closure_repo.get_by_ancestor(node_id)
        depth_below: Dict[int, int] = {e.descendant_id: e.distance for e in subtree}
        if node_id not in depth_below:
            raise DataIntegrityError(f"Node {node_id} has no self-closure row", node_id=node_id)

        internal: Set[ClosureRow] = {
            (e.ancestor_id, e.descendant_id, e.distance)
            for e in self.closure_repo.get_within(depth_below.keys())
        }

        new_chain: List[NodeClosure] = []
        if new_parent_id is not None:
            new_chain = self.closure_repo.get_by_descendant(new_parent_id)
            if not new_chain:
                raise ParentNodeNotFoundError(new_parent_id)

        rows: Set[ClosureRow] = set(internal)
        for member_id, distance in depth_below.items():
            rows.add((member_id, member_id, 0))
            for ancestor in new_chain:
                rows.add((ancestor.ancestor_id, member_id, ancestor.distance + 1 + distance))

        self.closure_repo.delete_by_descendants(depth_below.keys())
        self.closure_repo.add_all(rows)

        logger.info(
            "Rebuilt closure rows for subtree",
            extra={
                "node_id": node_id,
                "parent_id": new_parent_id,
                "subtree_size": len(depth_below),
                "rows": len(rows),
            },
        )

    def _resolve(self, node_ids: List[int]) -> List[Node]:
        """Load nodes for *node_ids*, keeping the given order."""
        by_id = self.node_repo.get_many(node_ids)
        missing = [node_id for node_id in node_ids if node_id not in by_id]
        if missing:
            raise DataIntegrityError(
                f"Closure rows reference missing node {missing[0]}", node_id=missing[0]
            )
        return [by_id[node_id] for node_id in node_ids]
