"""Materialized-path hierarchy: each node stores its ancestor chain as a string.

A root created with id 1 has path ``/1/``; its child with id 4 has
``/1/4/``. Subtree queries are prefix matches on the path column, and moving
a node rewrites the prefix of every path in its subtree.
"""

import logging
from typing import List, Optional

from ..core.config import HierarchyStrategy
from ..exceptions import CircularDependencyError, DataIntegrityError
from ..models import Node
from .base import HierarchyEngine, UNSET

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
ROOT_PREFIX = PATH_SEPARATOR


def build_path(prefix: str, node_id: int) -> str:
    """Path of a node with *node_id* placed under *prefix*."""
    return f"{prefix}{node_id}{PATH_SEPARATOR}"


def parse_path(path: str) -> List[int]:
    """Split a stored path into its id segments, root first.

    Raises:
        DataIntegrityError: If the path is not of the form ``/<id>/.../``.
    """
    if not path or not path.startswith(PATH_SEPARATOR) or not path.endswith(PATH_SEPARATOR):
        raise DataIntegrityError(f"Malformed path: {path!r}")
    segments = path.strip(PATH_SEPARATOR).split(PATH_SEPARATOR)
    try:
        return [int(segment) for segment in segments]
    except ValueError as e:
        raise DataIntegrityError(f"Malformed path segment in {path!r}") from e


def has_repeated_segment(path: str) -> bool:
    """True if an id appears more than once in *path* (a cycle symptom)."""
    segments = [s for s in path.split(PATH_SEPARATOR) if s]
    return len(set(segments)) < len(segments)


class PathEngine(HierarchyEngine):
    """Materialized-path storage. ``parent_id`` is maintained alongside."""

    strategy = HierarchyStrategy.PATH

    def create_node(self, name: str, parent_id: Optional[int] = None) -> Node:
        self._validate_name(name)

        with self._unit_of_work():
            if parent_id is not None:
                self._require_parent(parent_id)
            self._lock_paths(parent_id)
            prefix = self._prefix_for(parent_id)
            # The id is only known after the first flush, so the path is
            # written in a second step inside the same transaction.
            node = self.node_repo.create(name, parent_id=parent_id, path=prefix)
            node.path = build_path(prefix, node.id)
            self.db.flush()

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
                self._move(node, parent_id)

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
            descendants = self.node_repo.get_by_path_prefix(node.path, include_self=False)

            for descendant in descendants:
                if has_repeated_segment(descendant.path):
                    logger.error(
                        "Repeated id in descendant path",
                        extra={"node_id": node_id, "path": descendant.path},
                    )
                    raise DataIntegrityError(
                        f"Circular reference detected in path: {descendant.path}",
                        node_id=descendant.id,
                    )

            # Longest paths first so children go before their parents.
            ordered = sorted(descendants, key=lambda d: len(d.path), reverse=True)
            removed = self.node_repo.delete_many([d.id for d in ordered] + [node.id])

        logger.info(
            "Deleted subtree",
            extra={"node_id": node_id, "removed": removed, "strategy": self.strategy.value},
        )

    def list_descendants(self, node_id: int) -> List[Node]:
        node = self.node_repo.get_by_id(node_id)
        return self.node_repo.get_by_path_prefix(node.path, include_self=False)

    def list_ancestors(self, node_id: int) -> List[Node]:
        node = self.node_repo.get_by_id(node_id)
        segments = parse_path(node.path)
        if segments[-1] != node.id:
            raise DataIntegrityError(
                f"Path {node.path!r} does not end with node id {node.id}", node_id=node.id
            )

        ancestor_ids = list(reversed(segments[:-1]))
        by_id = self.node_repo.get_many(ancestor_ids)
        missing = [a for a in ancestor_ids if a not in by_id]
        if missing:
            raise DataIntegrityError(
                f"Path {node.path!r} references missing node {missing[0]}", node_id=node.id
            )
        return [by_id[a] for a in ancestor_ids]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _prefix_for(self, parent_id: Optional[int]) -> str:
        if parent_id is None:
            return ROOT_PREFIX
        return self._require_parent(parent_id).path

    def _move(self, node: Node, new_parent_id: Optional[int]) -> None:
        """Re-parent *node* and rewrite the path of its whole subtree."""
        if new_parent_id is not None:
            self._require_parent(new_parent_id)
        self._lock_paths(node.id, new_parent_id)
        new_prefix = self._prefix_for(new_parent_id)
        current_path = node.path

        # The new parent sits inside the moving subtree (or is the node itself).
        if new_prefix.startswith(current_path):
            raise CircularDependencyError(node.id, new_parent_id)

        new_path = build_path(new_prefix, node.id)
        subtree = self.node_repo.get_by_path_prefix(current_path)
        for member in subtree:
            member.path = new_path + member.path[len(current_path):]

        node.parent_id = new_parent_id
        node.path = new_path

        logger.info(
            "Rewrote subtree paths",
            extra={
                "node_id": node.id,
                "old_path": current_path,
                "new_path": new_path,
                "subtree_size": len(subtree),
            },
        )
