"""Pydantic schemas for API validation."""

from .node import NodeCreate, NodeUpdate, NodeResponse, NodeTree, NodePage

__all__ = ["NodeCreate", "NodeUpdate", "NodeResponse", "NodeTree", "NodePage"]
