"""Adjacency-list hierarchy: each node stores only its parent id.

Moves are a single column update guarded by a cycle check; subtree and
ancestor queries walk the parent pointers one level at a time.
"""

import logging
from typing import List, Optional

from ..core.config import HierarchyStrategy
from ..exceptions import CircularDependencyError, DataIntegrityError
from ..models import Node
from .base import HierarchyEngine, UNSET

logger = logging.getLogger(__name__)


class AdjacencyEngine(HierarchyEngine):
    """Parent-pointer storage. Traversals are iterative with a visited set."""

    strategy = HierarchyStrategy.ADJACENCY

    def create_node(self, name: str, parent_id: Optional[int] = None) -> Node:
        self._validate_name(name)

        with self._unit_of_work():
            if parent_id is not None:
                self._require_parent(parent_id)
            self._lock_paths(parent_id)
            node = self.node_repo.create(name, parent_id=parent_id)

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
                if parent_id is not None and (
                    parent_id == node_id or parent_id in self._descendant_ids(node)
                ):
                    raise CircularDependencyError(node_id, parent_id)
                node.parent_id = parent_id

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
            # Pre-order reversed puts every child before its parent.
            subtree_ids = [d.id for d in reversed(self._walk_descendants(node))]
            subtree_ids.append(node.id)
            removed = self.node_repo.delete_many(subtree_ids)

        logger.info(
            "Deleted subtree",
            extra={"node_id": node_id, "removed": removed, "strategy": self.strategy.value},
        )

    def list_descendants(self, node_id: int) -> List[Node]:
        node = self.node_repo.get_by_id(node_id)
        return self._walk_descendants(node)

    def list_ancestors(self, node_id: int) -> List[Node]:
        node = self.node_repo.get_by_id(node_id)

        ancestors: List[Node] = []
        seen = {node.id}
        current = node
        while current.parent_id is not None:
            if current.parent_id in seen:
                logger.error(
                    "Cycle in parent chain",
                    extra={"node_id": node_id, "repeated_id": current.parent_id},
                )
                raise DataIntegrityError(
                    f"Parent chain of node {node_id} loops back to node {current.parent_id}",
                    node_id=node_id,
                )
            parent = self.node_repo.get_by_id_optional(current.parent_id)
            if parent is None:
                raise DataIntegrityError(
                    f"Node {current.id} references missing parent {current.parent_id}",
                    node_id=current.id,
                )
            seen.add(parent.id)
            ancestors.append(parent)
            current = parent
        return ancestors

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _walk_descendants(self, root: Node) -> List[Node]:
        """Depth-first pre-order walk below *root* using an explicit stack."""
        result: List[Node] = []
        visited = {root.id}
        stack = list(reversed(self.node_repo.get_children(root.id)))

        while stack:
            current = stack.pop()
            if current.id in visited:
                logger.error(
                    "Node reached twice while walking subtree",
                    extra={"node_id": root.id, "repeated_id": current.id},
                )
                raise DataIntegrityError(
                    f"Subtree of node {root.id} reaches node {current.id} twice",
                    node_id=root.id,
                )
            visited.add(current.id)
            result.append(current)
            stack.extend(reversed(self.node_repo.get_children(current.id)))

        return result

    def _descendant_ids(self, root: Node) -> set:
        return {node.id for node in self._walk_descendants(root)}
