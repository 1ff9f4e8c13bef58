"""Node model shared by every hierarchy strategy."""

from sqlalchemy import Column, Index, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..core.config import MAX_NAME_COLUMN_LENGTH
from ..database import Base


class Node(Base):
    """A named unit in the hierarchy (e.g. a department).

    ``parent_id`` is kept current by all three strategies so that children
    and parent lookups are a single query regardless of strategy.
    ``path`` is only populated by the materialized-path strategy.
    """

    __tablename__ = "nodes"
    __table_args__ = (
        Index("ix_nodes_parent_id", "parent_id"),
        Index("ix_nodes_path", "path"),
        Index("ix_nodes_name", "name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(MAX_NAME_COLUMN_LENGTH), nullable=False)
    parent_id = Column(Integer, ForeignKey("nodes.id"), nullable=True)

    # Materialized path, e.g. "/1/4/9/" (PathEngine only)
    path = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Node id={self.id} name={self.name!r} parent_id={self.parent_id}>"
