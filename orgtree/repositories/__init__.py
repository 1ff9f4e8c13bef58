"""Data access repositories."""

from .base import BaseRepository
from .node_repository import NodeRepository
from .closure_repository import ClosureRepository

__all__ = [
    "BaseRepository",
    "NodeRepository",
    "ClosureRepository",
]
