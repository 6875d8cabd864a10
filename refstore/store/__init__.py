"""Store module for ref-store."""

from .directory import (
    DirectoryError,
    FileRevisionDirectory,
    MemoryRevisionDirectory,
    RevisionDirectory,
    RevisionExists,
    RevisionNotFound,
    StorageUnavailable,
)
from .results import NO_REVISION, Outcome, Result, is_valid_key
from .versioned import VersionedStore

__all__ = [
    "DirectoryError",
    "FileRevisionDirectory",
    "MemoryRevisionDirectory",
    "RevisionDirectory",
    "RevisionExists",
    "RevisionNotFound",
    "StorageUnavailable",
    "NO_REVISION",
    "Outcome",
    "Result",
    "is_valid_key",
    "VersionedStore",
]
