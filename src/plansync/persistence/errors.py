"""Errors raised while writing item files."""


class PersistenceError(Exception):
    """Raised when an item file cannot be read or replaced."""


class FrontmatterFormatError(PersistenceError):
    """Raised when an item file's header is missing, corrupted or unsupported."""
