"""Repository for node database operations."""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func

from ..exceptions import NodeNotFoundError
from ..models import Node
from .base import BaseRepository


class NodeRepository(BaseRepository[Node]):
    """Data access layer for the nodes table.

    Writes only flush; committing is left to the engine's unit of work.
    """

    model_class = Node
    not_found_error = NodeNotFoundError

    def create(self, name: str, parent_id: Optional[int] = None, path: Optional[str] = None) -> Node:
        """Insert a node and flush so its id is assigned."""
        node = Node(name=name, parent_id=parent_id, path=path)
        self.db.add(node)
        self.db.flush()
        return node

    def exists(self, node_id: int) -> bool:
        return self.db.query(Node.id).filter(Node.id == node_id).first() is not None

    def get_all(self, skip: int = 0, limit: Optional[int] = None) -> List[Node]:
        query = self.db.query(Node).order_by(Node.id).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self) -> int:
        return self.db.query(func.count(Node.id)).scalar() or 0

    def get_many(self, node_ids: Iterable[int]) -> Dict[int, Node]:
        """Load several nodes in one query, keyed by id."""
        ids = list(set(node_ids))
        if not ids:
            return {}
        rows = self.db.query(Node).filter(Node.id.in_(ids)).all()
        return {node.id: node for node in rows}

    def get_children(self, parent_id: int, skip: int = 0, limit: Optional[int] = None) -> List[Node]:
        query = (
            self.db.query(Node)
            .filter(Node.parent_id == parent_id)
            .order_by(Node.id)
            .offset(skip)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def lock_rows(self, node_ids: Iterable[int]) -> List[Node]:
        """SELECT ... FOR UPDATE on *node_ids*, in id order.

        Rows are locked in ascending id so two writers locking overlapping
        sets cannot deadlock. Loaded instances are refreshed from the locked
        rows. SQLite has no row locks and ignores the clause.
        """
        ids = sorted(set(node_ids))
        if not ids:
            return []
        return (
            self.db.query(Node)
            .filter(Node.id.in_(ids))
            .order_by(Node.id)
            .with_for_update()
            .populate_existing()
            .all()
        )

    def count_children(self, parent_ids: Iterable[int]) -> Dict[int, int]:
        """Direct child counts for each id in *parent_ids* (missing = 0)."""
        ids = list(set(parent_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(Node.parent_id, func.count(Node.id))
            .filter(Node.parent_id.in_(ids))
            .group_by(Node.parent_id)
            .all()
        )
        return {parent_id: count for parent_id, count in rows}

    def search_by_name(self, substring: str, skip: int = 0, limit: Optional[int] = None) -> List[Node]:
        """Case-insensitive substring match on name."""
        query = (
            self.db.query(Node)
            .filter(Node.name.icontains(substring, autoescape=True))
            .order_by(Node.id)
            .offset(skip)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_by_path_prefix(self, prefix: str, include_self: bool = True) -> List[Node]:
        """Nodes whose materialized path starts with *prefix*, ordered by path."""
        query = self.db.query(Node).filter(Node.path.startswith(prefix, autoescape=True))
        if not include_self:
            query = query.filter(Node.path != prefix)
        return query.order_by(Node.path).all()

    def delete_many(self, node_ids: Iterable[int]) -> int:
        """Delete nodes by id in one statement. Returns the number of rows removed.

        The rows are loaded first so instances held by callers keep their
        column values once the delete detaches them from the session.
        """
        ids = list(node_ids)
        if not ids:
            return 0
        self.get_many(ids)
        return (
            self.db.query(Node)
            .filter(Node.id.in_(ids))
            .delete(synchronize_session="fetch")
        )
