"""Workspace discovery and the record repository."""

from .discovery import PlanFileScanner
from .repository import ItemRepository

__all__ = ["PlanFileScanner", "ItemRepository"]
