"""Node API: CRUD, moves and hierarchy queries.

Endpoints are thin. The configured HierarchyEngine owns validation, cycle
checks and the storage-specific algorithms; errors surface as
HierarchyException and are rendered by the exception handler.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Node
from ..schemas.node import NodeCreate, NodePage, NodeResponse, NodeTree, NodeUpdate
from ..services import HierarchyEngine, Page, UNSET, build_engine

router = APIRouter(prefix="/api/nodes", tags=["nodes"])

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500
# Nesting is kept well below pydantic's recursion guard for nested models.
MAX_TREE_DEPTH = 200


def get_hierarchy_engine(db: Session = Depends(get_db)) -> HierarchyEngine:
    """Engine for the configured strategy, bound to the request's session."""
    return build_engine(db)


def _respond(engine: HierarchyEngine, nodes: List[Node]) -> List[NodeResponse]:
    counts = engine.child_counts(nodes)
    return [
        NodeResponse.model_validate(node).model_copy(
            update={"sub_entities_count": counts[node.id]}
        )
        for node in nodes
    ]


def _respond_one(engine: HierarchyEngine, node: Node) -> NodeResponse:
    return _respond(engine, [node])[0]


def _respond_page(engine: HierarchyEngine, page: Page, skip: int, limit: int) -> NodePage:
    return NodePage(items=_respond(engine, page.items), total=page.total, skip=skip, limit=limit)


# -- CRUD -----------------------------------------------------------------

@router.post("", response_model=NodeResponse, status_code=201)
def create_node(data: NodeCreate, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    node = engine.create_node(data.name, data.parent_id)
    return _respond_one(engine, node)


@router.get("", response_model=List[NodeResponse])
def list_nodes(
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    return _respond(engine, engine.list_nodes(skip=skip, limit=limit))


@router.get("/search", response_model=List[NodeResponse])
def search_nodes(
    name: str = Query(..., min_length=1),
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    """Case-insensitive substring search on node names."""
    return _respond(engine, engine.search_by_name(name, skip=skip, limit=limit))


@router.get("/tree", response_model=List[NodeTree])
def get_tree(
    max_depth: int = Query(MAX_TREE_DEPTH, ge=1, le=MAX_TREE_DEPTH),
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    """Full hierarchy as nested nodes, one entry per root.

    Nodes at *max_depth* come back without children; their
    ``sub_entities_count`` tells whether anything was cut off.
    """
    return engine.get_tree(max_depth=max_depth)


@router.get("/{node_id}", response_model=NodeResponse)
def get_node(node_id: int, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    return _respond_one(engine, engine.get_node(node_id))


@router.put("/{node_id}", response_model=NodeResponse)
def update_node(
    node_id: int,
    data: NodeUpdate,
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    """Rename and/or move a node. Send ``"parent_id": null`` to make it a root."""
    parent_id = data.parent_id if "parent_id" in data.model_fields_set else UNSET
    node = engine.update_node(node_id, name=data.name, parent_id=parent_id)
    return _respond_one(engine, node)


@router.delete("/{node_id}", status_code=204)
def delete_node(node_id: int, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    """Delete a node and its entire subtree."""
    engine.delete_node(node_id)
    return Response(status_code=204)


# -- Hierarchy queries ----------------------------------------------------

@router.get("/{node_id}/children", response_model=List[NodeResponse])
def list_children(node_id: int, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    return _respond(engine, engine.list_children(node_id))


@router.get("/{node_id}/parent", response_model=NodeResponse)
def get_parent(node_id: int, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    return _respond_one(engine, engine.get_parent(node_id))


@router.get("/{node_id}/descendants", response_model=List[NodeResponse])
def list_descendants(node_id: int, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    return _respond(engine, engine.list_descendants(node_id))


@router.get("/{node_id}/ancestors", response_model=List[NodeResponse])
def list_ancestors(node_id: int, engine: HierarchyEngine = Depends(get_hierarchy_engine)):
    """Ancestors, nearest first."""
    return _respond(engine, engine.list_ancestors(node_id))


# -- Paginated hierarchy queries --------------------------------------------

@router.get("/{node_id}/children/paginated", response_model=NodePage)
def page_children(
    node_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    return _respond_page(engine, engine.children_page(node_id, skip=skip, limit=limit), skip, limit)


@router.get("/{node_id}/descendants/paginated", response_model=NodePage)
def page_descendants(
    node_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    return _respond_page(engine, engine.descendants_page(node_id, skip=skip, limit=limit), skip, limit)


@router.get("/{node_id}/ancestors/paginated", response_model=NodePage)
def page_ancestors(
    node_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    engine: HierarchyEngine = Depends(get_hierarchy_engine),
):
    """Ancestors nearest first, one page at a time."""
    return _respond_page(engine, engine.ancestors_page(node_id, skip=skip, limit=limit), skip, limit)
