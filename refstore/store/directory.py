"""
Revision Directory Module

Durable enumeration and lookup of the revisions written for a key.

Two backends are provided:
- FileRevisionDirectory: one directory per key under a storage root,
  one file per revision named by the ref's decimal value
- MemoryRevisionDirectory: an in-process index, used for tests and for
  running the server without touching the disk

Both honour the same contract. append() is an atomic create-if-absent:
of two callers racing to write the same (key, ref) exactly one succeeds
and the other gets RevisionExists. The versioned store builds its
optimistic concurrency control on top of that single guarantee.

Layout on disk:
    <root>/<key>/1
    <root>/<key>/2
    ...
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp-"


class DirectoryError(Exception):
    """Base exception for revision directory errors"""
    pass


class RevisionNotFound(DirectoryError):
    """Raised when a ref does not exist for a key"""

    def __init__(self, key: str, ref: int):
        super().__init__(f"Revision {ref} not found for key {key!r}")
        self.key = key
        self.ref = ref


class RevisionExists(DirectoryError):
    """Raised when appending a ref that has already been written"""

    def __init__(self, key: str, ref: int):
        super().__init__(f"Revision {ref} already exists for key {key!r}")
        self.key = key
        self.ref = ref


class StorageUnavailable(DirectoryError):
    """Raised when the underlying storage medium fails"""
    pass


class RevisionDirectory:
    """
    Interface of a per-key revision directory.

    All operations are coroutines so backends are free to do real I/O.
    """

    async def current_ref(self, key: str) -> Optional[int]:
        """
        Return the highest ref written for key.

        Returns None when the key has no revisions. Absence is a normal
        outcome, this never raises RevisionNotFound.
        """
        raise NotImplementedError()

    async def load(self, key: str, ref: int) -> bytes:
        """Return the exact bytes of (key, ref); raises RevisionNotFound."""
        raise NotImplementedError()

    async def append(self, key: str, ref: int, content: bytes) -> None:
        """Persist a new revision at exactly ref; raises RevisionExists."""
        raise NotImplementedError()

    async def ensure_exists(self, key: str) -> None:
        """Prepare the directory of key. No-op if it is already there."""
        raise NotImplementedError()

    async def revisions(self, key: str) -> List[int]:
        """Return every ref written for key, ascending."""
        raise NotImplementedError()


def parse_ref_name(name: str) -> Optional[int]:
    """
    Convert a revision file name to its ref.

    Returns None for anything that is not a positive decimal integer
    without leading zeros (temporary files, stray entries).
    """
    if not name.isascii() or not name.isdigit() or name.startswith("0"):
        return None
    return int(name)


class FileRevisionDirectory(RevisionDirectory):
    """
    Revision directory backed by the local filesystem.

    A revision becomes visible under its final name only once its
    content is fully written: content goes to a temporary file in the
    key directory first and is then published with os.link(), which
    refuses to replace an existing name. Readers therefore never see a
    torn revision, and two writers can never both claim the same ref.

    Blocking filesystem calls run in a worker thread.

    Attributes:
        root: Storage root; each key is a directory directly below it
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"FileRevisionDirectory(root={str(self.root)!r})"

    def key_path(self, key: str) -> Path:
        return self.root / key

    async def current_ref(self, key: str) -> Optional[int]:
        refs = await asyncio.to_thread(self._scan, key)
        return max(refs) if refs else None

    async def revisions(self, key: str) -> List[int]:
        return sorted(await asyncio.to_thread(self._scan, key))

    async def load(self, key: str, ref: int) -> bytes:
        return await asyncio.to_thread(self._load, key, ref)

    async def append(self, key: str, ref: int, content: bytes) -> None:
        await asyncio.to_thread(self._append, key, ref, content)

    async def ensure_exists(self, key: str) -> None:
        await asyncio.to_thread(self._ensure_exists, key)

    def _scan(self, key: str) -> List[int]:
        try:
            with os.scandir(self.key_path(key)) as entries:
                names = [entry.name for entry in entries]
        except (FileNotFoundError, NotADirectoryError):
            # Never written
            return []
        except OSError as exc:
            raise StorageUnavailable(f"Cannot list revisions of {key!r}: {exc}") from exc

        refs = []
        for name in names:
            ref = parse_ref_name(name)
            if ref is not None:
                refs.append(ref)
        return refs

    def _load(self, key: str, ref: int) -> bytes:
        if ref < 1:
            raise RevisionNotFound(key, ref)
        try:
            return (self.key_path(key) / str(ref)).read_bytes()
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise RevisionNotFound(key, ref) from exc
        except OSError as exc:
            raise StorageUnavailable(f"Cannot read revision {ref} of {key!r}: {exc}") from exc

    def _append(self, key: str, ref: int, content: bytes) -> None:
        directory = self.key_path(key)
        target = directory / str(ref)

        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=TEMP_PREFIX)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot stage revision {ref} of {key!r}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.link(tmp_path, target)
        except FileExistsError as exc:
            raise RevisionExists(key, ref) from exc
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write revision {ref} of {key!r}: {exc}") from exc
        finally:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass

        logger.debug(f"Stored revision {ref} of {key!r} ({len(content)} bytes)")

    def _ensure_exists(self, key: str) -> None:
        try:
            self.key_path(key).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create directory for {key!r}: {exc}") from exc


class MemoryRevisionDirectory(RevisionDirectory):
    """
    Revision directory kept in process memory.

    Keeps an index of the current ref per key so current_ref() does not
    enumerate revisions. None of the methods await between checking and
    mutating state, so each one is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._revisions: Dict[str, Dict[int, bytes]] = {}
        self._current: Dict[str, int] = {}

    def __repr__(self) -> str:
        return f"MemoryRevisionDirectory(keys={len(self._revisions)})"

    async def current_ref(self, key: str) -> Optional[int]:
        return self._current.get(key)

    async def revisions(self, key: str) -> List[int]:
        return sorted(self._revisions.get(key, {}))

    async def load(self, key: str, ref: int) -> bytes:
        try:
            return self._revisions[key][ref]
        except KeyError:
            raise RevisionNotFound(key, ref) from None

    async def append(self, key: str, ref: int, content: bytes) -> None:
        revisions = self._revisions.setdefault(key, {})
        if ref in revisions:
            raise RevisionExists(key, ref)

        revisions[ref] = bytes(content)
        if ref > self._current.get(key, 0):
            self._current[key] = ref

    async def ensure_exists(self, key: str) -> None:
        self._revisions.setdefault(key, {})
