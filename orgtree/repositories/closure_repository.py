"""Repository for closure table rows."""

from typing import Iterable, List, Tuple

from sqlalchemy import or_

from ..models import NodeClosure


class ClosureRepository:
    """CRUD for node_closure. Writes flush; the engine commits."""

    def __init__(self, db):
        self.db = db

    def get_by_ancestor(self, ancestor_id: int) -> List[NodeClosure]:
        """Rows for the subtree rooted at *ancestor_id* (self-row included)."""
        return (
            self.db.query(NodeClosure)
            .filter(NodeClosure.ancestor_id == ancestor_id)
            .order_by(NodeClosure.distance, NodeClosure.descendant_id)
            .all()
        )

    def get_by_descendant(self, descendant_id: int) -> List[NodeClosure]:
        """Ancestor chain of *descendant_id*, nearest first (self-row included)."""
        return (
            self.db.query(NodeClosure)
            .filter(NodeClosure.descendant_id == descendant_id)
            .order_by(NodeClosure.distance, NodeClosure.ancestor_id)
            .all()
        )

    def get_within(self, node_ids: Iterable[int]) -> List[NodeClosure]:
        """Rows whose ancestor and descendant both belong to *node_ids*."""
        ids = list(node_ids)
        if not ids:
            return []
        return (
            self.db.query(NodeClosure)
            .filter(NodeClosure.ancestor_id.in_(ids))
            .filter(NodeClosure.descendant_id.in_(ids))
            .all()
        )

    def count_by_ancestor(self, ancestor_id: int) -> int:
        return (
            self.db.query(NodeClosure)
            .filter(NodeClosure.ancestor_id == ancestor_id)
            .count()
        )

    def add_all(self, rows: Iterable[Tuple[int, int, int]]) -> None:
        """Insert ``(ancestor_id, descendant_id, distance)`` rows.

        Inserted in ascending distance, then ancestor id, so fixture ids are
        reproducible.
        """
        ordered = sorted(set(rows), key=lambda r: (r[2], r[0], r[1]))
        self.db.add_all(
            NodeClosure(ancestor_id=a, descendant_id=d, distance=dist)
            for a, d, dist in ordered
        )
        self.db.flush()

    def delete_by_descendants(self, descendant_ids: Iterable[int]) -> int:
        ids = list(descendant_ids)
        if not ids:
            return 0
        return (
            self.db.query(NodeClosure)
            .filter(NodeClosure.descendant_id.in_(ids))
            .delete(synchronize_session="fetch")
        )

    def delete_touching(self, node_ids: Iterable[int]) -> int:
        """Delete every row where one of *node_ids* is ancestor or descendant."""
        ids = list(node_ids)
        if not ids:
            return 0
        return (
            self.db.query(NodeClosure)
            .filter(or_(NodeClosure.ancestor_id.in_(ids), NodeClosure.descendant_id.in_(ids)))
            .delete(synchronize_session="fetch")
        )
