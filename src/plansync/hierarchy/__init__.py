"""Parent/child structure and progress over planning items."""

from .builder import build_hierarchy
from .index import HierarchyIndex, NodeRef
from .models import HierarchyNode, HierarchyTree
from .progress import Progress, ProgressAggregator

__all__ = [
    "build_hierarchy",
    "HierarchyIndex",
    "NodeRef",
    "HierarchyNode",
    "HierarchyTree",
    "Progress",
    "ProgressAggregator",
]
