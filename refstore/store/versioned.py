"""
Versioned Store Module

Conditional reads and conditional writes against a revision directory.

Concurrency control is optimistic: a writer states the ref it last read,
the store refuses the write if that ref is no longer current, and the
new ref is claimed with the directory's atomic append. No lock is held
between reading the latest ref and appending; a writer that loses the
race for a ref gets a conflict and must re-read.

    Empty -> Revision(1) -> Revision(2) -> ...

Refs never decrease and are never reused. A conflict is a rejected
transition, not a state.
"""

import logging
from typing import Optional

from .directory import (
    RevisionDirectory,
    RevisionExists,
    RevisionNotFound,
    StorageUnavailable,
)
from .results import NO_REVISION, Result, is_valid_key

logger = logging.getLogger(__name__)


class VersionedStore:
    """
    Versioned object store with optimistic concurrency control.

    The store holds no mutable state of its own; every operation is
    self-contained given the key and the directory, so any number of
    connections can share one instance.

    Usage:
        store = VersionedStore(FileRevisionDirectory('/var/lib/ref-store'))
        result = await store.write('settings', 0, b'{}')   # ref 1
        result = await store.read('settings')             # (1, b'{}')

    Attributes:
        directory: The RevisionDirectory holding every key's revisions
    """

    def __init__(self, directory: RevisionDirectory):
        self.directory = directory

    def __repr__(self) -> str:
        return f"VersionedStore({self.directory!r})"

    async def read(self, key: str, if_none_match: Optional[int] = None) -> Result:
        """
        Read the current revision of a key.

        Args:
            key: The key to read
            if_none_match: A ref the caller already holds; if it is still
                current the content is not loaded

        Returns:
            OK with (ref, content); OK with ref NO_REVISION and no content
            for a key that was never written; NOT_MODIFIED when
            if_none_match is current; INVALID_KEY; STORAGE_UNAVAILABLE
        """
        if not is_valid_key(key):
            return Result.invalid_key(key)

        try:
            current = await self.directory.current_ref(key)
            if current is None:
                return Result.empty()

            if if_none_match is not None and if_none_match == current:
                logger.debug(f"Read {key!r}: ref {current} not modified")
                return Result.not_modified(current)

            content = await self.directory.load(key, current)
        except StorageUnavailable as exc:
            logger.error(f"Read {key!r} failed: {exc}")
            return Result.storage_unavailable(str(exc))

        return Result.ok(current, content)

    async def read_revision(self, key: str, ref: int) -> Result:
        """
        Read one specific, possibly superseded, revision of a key.

        Returns:
            OK with (ref, content), or NOT_FOUND if ref was never written
        """
        if not is_valid_key(key):
            return Result.invalid_key(key)

        try:
            content = await self.directory.load(key, ref)
        except RevisionNotFound:
            logger.debug(f"Revision {ref} of {key!r} not found")
            return Result.not_found(ref)
        except StorageUnavailable as exc:
            logger.error(f"Read of revision {ref} of {key!r} failed: {exc}")
            return Result.storage_unavailable(str(exc))

        return Result.ok(ref, content)

    async def history(self, key: str) -> Result:
        """List every ref written for a key, oldest first."""
        if not is_valid_key(key):
            return Result.invalid_key(key)

        try:
            refs = await self.directory.revisions(key)
        except StorageUnavailable as exc:
            logger.error(f"History of {key!r} failed: {exc}")
            return Result.storage_unavailable(str(exc))

        return Result.history(refs)

    async def write(self, key: str, expected_ref: Optional[int], content: bytes) -> Result:
        """
        Write a new revision of a key.

        Args:
            key: The key to write
            expected_ref: The ref the caller last read. NO_REVISION (0)
                requires the key to be unwritten; None writes
                unconditionally
            content: The new content, stored byte for byte

        Returns:
            OK with the new ref; CONFLICT if expected_ref is stale or
            another writer claimed the same ref first; INVALID_KEY;
            STORAGE_UNAVAILABLE
        """
        if not is_valid_key(key):
            return Result.invalid_key(key)

        try:
            await self.directory.ensure_exists(key)
            latest = await self.directory.current_ref(key) or NO_REVISION

            if expected_ref is not None and expected_ref != latest:
                logger.debug(f"Write {key!r}: expected ref {expected_ref}, current is {latest}")
                return Result.conflict(f"current ref is {latest}")

            new_ref = latest + 1
            await self.directory.append(key, new_ref, content)
        except RevisionExists:
            logger.debug(f"Write {key!r}: lost race for ref {latest + 1}")
            return Result.conflict(f"ref {latest + 1} already taken")
        except StorageUnavailable as exc:
            logger.error(f"Write {key!r} failed: {exc}")
            return Result.storage_unavailable(str(exc))

        logger.debug(f"Write {key!r}: ref {new_ref}")
        return Result.ok(new_ref)
