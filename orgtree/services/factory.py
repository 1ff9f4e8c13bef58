"""Select the hierarchy engine for a deployment."""

from typing import Dict, Optional, Type

from sqlalchemy.orm import Session

from ..core.config import HierarchyStrategy, settings
from .adjacency_service import AdjacencyEngine
from .base import HierarchyEngine
from .closure_service import ClosureEngine
from .path_service import PathEngine

ENGINES: Dict[HierarchyStrategy, Type[HierarchyEngine]] = {
    HierarchyStrategy.ADJACENCY: AdjacencyEngine,
    HierarchyStrategy.CLOSURE: ClosureEngine,
    HierarchyStrategy.PATH: PathEngine,
}


def build_engine(
    db: Session,
    strategy: Optional[HierarchyStrategy] = None,
    max_name_length: Optional[int] = None,
) -> HierarchyEngine:
    """Construct the engine for *strategy*, falling back to configured values."""
    strategy = HierarchyStrategy(strategy or settings.hierarchy_strategy)
    if max_name_length is None:
        max_name_length = settings.max_name_length
    return ENGINES[strategy](db, max_name_length=max_name_length)
