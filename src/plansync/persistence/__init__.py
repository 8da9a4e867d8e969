"""Atomic persistence of status changes."""

from .errors import FrontmatterFormatError, PersistenceError
from .writer import PersistenceWriter, StatusWriteResult

__all__ = ["FrontmatterFormatError", "PersistenceError", "PersistenceWriter", "StatusWriteResult"]
