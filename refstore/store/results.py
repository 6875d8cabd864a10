"""
Store Outcome Definitions

Every operation of the versioned store returns a Result carrying one
Outcome. Expected situations (a stale ref, a cache hit, a missing
revision) are ordinary values here, not exceptions, so callers handle
each case explicitly.
"""

import os
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional

# Ref of a key that has never been written
NO_REVISION = 0

# Longest file name most filesystems accept (NAME_MAX)
MAX_KEY_BYTES = 255


class Outcome(Enum):
    """Enumeration of store outcomes."""
    OK = auto()
    CONFLICT = auto()
    NOT_FOUND = auto()
    NOT_MODIFIED = auto()
    STORAGE_UNAVAILABLE = auto()
    INVALID_KEY = auto()


@dataclass(frozen=True)
class Result:
    """
    Outcome of a store operation.

    Attributes:
        outcome: Which of the Outcome variants this is
        ref: The ref the outcome refers to (NO_REVISION if none)
        content: Revision bytes for successful reads, None otherwise
        refs: Ascending refs for history requests
        message: Human readable detail for failures
    """
    outcome: Outcome
    ref: int = NO_REVISION
    content: Optional[bytes] = None
    refs: List[int] = field(default_factory=list)
    message: str = ""

    @property
    def is_ok(self) -> bool:
        return self.outcome == Outcome.OK

    @classmethod
    def ok(cls, ref: int = NO_REVISION, content: Optional[bytes] = None) -> "Result":
        """Create a successful result."""
        return cls(outcome=Outcome.OK, ref=ref, content=content)

    @classmethod
    def empty(cls) -> "Result":
        """Create the result of reading a key that was never written."""
        return cls(outcome=Outcome.OK, ref=NO_REVISION)

    @classmethod
    def history(cls, refs: List[int]) -> "Result":
        return cls(outcome=Outcome.OK, ref=refs[-1] if refs else NO_REVISION, refs=list(refs))

    @classmethod
    def conflict(cls, message: str = "") -> "Result":
        return cls(outcome=Outcome.CONFLICT, message=message)

    @classmethod
    def not_found(cls, ref: int = NO_REVISION) -> "Result":
        return cls(outcome=Outcome.NOT_FOUND, ref=ref)

    @classmethod
    def not_modified(cls, ref: int) -> "Result":
        return cls(outcome=Outcome.NOT_MODIFIED, ref=ref)

    @classmethod
    def storage_unavailable(cls, message: str = "") -> "Result":
        return cls(outcome=Outcome.STORAGE_UNAVAILABLE, message=message)

    @classmethod
    def invalid_key(cls, key: str = "") -> "Result":
        return cls(outcome=Outcome.INVALID_KEY, message=f"invalid key: {key!r}")


def is_valid_key(key) -> bool:
    """
    Check whether a key can be used as a single storage path segment.

    A key must be a non-empty string, must not be '.' or '..', and must
    not contain a path separator or NUL. It must also encode to a file
    name of at most MAX_KEY_BYTES bytes. Nothing else is inspected.
    """
    if not isinstance(key, str) or not key:
        return False
    if key in (".", ".."):
        return False
    if any(ch in key for ch in ("/", "\\", "\x00")):
        return False
    try:
        encoded = os.fsencode(key)
    except UnicodeEncodeError:
        return False
    return len(encoded) <= MAX_KEY_BYTES
