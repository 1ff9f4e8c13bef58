"""Closure table model: one row per (ancestor, descendant) pair."""

from sqlalchemy import Column, Index, Integer, ForeignKey
from ..database import Base


class NodeClosure(Base):
    """Materialized ancestor/descendant relation used by ClosureEngine.

    Every node has a self-row with distance 0; a direct parent/child pair
    has distance 1.
    """

    __tablename__ = "node_closure"
    __table_args__ = (
        Index("ix_node_closure_pair", "ancestor_id", "descendant_id", unique=True),
        Index("ix_node_closure_descendant_id", "descendant_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    ancestor_id = Column(Integer, ForeignKey("nodes.id"), nullable=False)
    descendant_id = Column(Integer, ForeignKey("nodes.id"), nullable=False)
    distance = Column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<NodeClosure {self.ancestor_id}->{self.descendant_id} d={self.distance}>"
