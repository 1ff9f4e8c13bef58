"""Database models."""

from .node import Node
from .closure import NodeClosure

__all__ = ["Node", "NodeClosure"]
