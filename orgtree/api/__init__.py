"""API routes."""

from .nodes import router as nodes_router

__all__ = [
    "nodes_router",
]
