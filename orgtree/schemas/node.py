"""Node and tree schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class NodeCreate(BaseModel):
    """Schema for creating a node."""
    name: str
    parent_id: Optional[int] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class NodeUpdate(BaseModel):
    """Schema for updating a node.

    ``parent_id`` omitted keeps the current parent; an explicit ``null``
    moves the node to the root level. Check ``model_fields_set``.
    """
    name: Optional[str] = None
    parent_id: Optional[int] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class NodeResponse(BaseModel):
    """Node as returned by the API."""
    id: int
    name: str
    parent_id: Optional[int] = None
    sub_entities_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NodeTree(BaseModel):
    """A node with its nested children, for full-hierarchy views."""
    id: int
    name: str
    parent_id: Optional[int] = None
    sub_entities_count: int = 0
    children: List['NodeTree'] = []


class NodePage(BaseModel):
    """One slice of a node listing with the size of the whole listing."""
    items: List[NodeResponse]
    total: int
    skip: int
    limit: int
