"""Hierarchy engines: one class per storage strategy behind a shared contract."""

from .base import HierarchyEngine, Page, UNSET
from .adjacency_service import AdjacencyEngine
from .closure_service import ClosureEngine
from .path_service import PathEngine
from .factory import ENGINES, build_engine

__all__ = [
    "HierarchyEngine",
    "UNSET",
    "Page",
    "AdjacencyEngine",
    "ClosureEngine",
    "PathEngine",
    "ENGINES",
    "build_engine",
]
