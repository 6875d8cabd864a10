"""
Tests for the Revision Directory backends

These tests verify both RevisionDirectory implementations:
- current_ref(): highest ref, None for unwritten keys
- load(): exact bytes, RevisionNotFound for missing refs
- append(): atomic create-if-absent, RevisionExists on reuse
- ensure_exists(): idempotent preparation
- revisions(): ascending list of refs

Run with: python -m pytest tests/test_directory.py -v
"""

import asyncio
import os
import pytest

from refstore.store.directory import (
    FileRevisionDirectory,
    RevisionExists,
    RevisionNotFound,
    StorageUnavailable,
    parse_ref_name,
)


@pytest.mark.asyncio
class TestCurrentRef:
    """Test current_ref() on both backends."""

    async def test_unwritten_key_has_no_ref(self, directory):
        """A key without a directory reports no revision, not an error."""
        assert await directory.current_ref("missing") is None

    async def test_empty_directory_has_no_ref(self, directory):
        """A prepared but never written key reports no revision."""
        await directory.ensure_exists("key")
        assert await directory.current_ref("key") is None

    async def test_current_ref_is_highest(self, directory):
        await directory.ensure_exists("key")
        for ref in (1, 2, 3):
            await directory.append("key", ref, b"x")
        assert await directory.current_ref("key") == 3

    async def test_keys_are_independent(self, directory):
        await directory.ensure_exists("a")
        await directory.ensure_exists("b")
        await directory.append("a", 1, b"a1")
        await directory.append("a", 2, b"a2")
        await directory.append("b", 1, b"b1")

        assert await directory.current_ref("a") == 2
        assert await directory.current_ref("b") == 1


@pytest.mark.asyncio
class TestAppendAndLoad:
    """Test append() and load() on both backends."""

    async def test_load_returns_exact_bytes(self, directory):
        content = b"\x00\xff line one\nline two\r\n"
        await directory.ensure_exists("key")
        await directory.append("key", 1, content)
        assert await directory.load("key", 1) == content

    async def test_empty_content(self, directory):
        await directory.ensure_exists("key")
        await directory.append("key", 1, b"")
        assert await directory.load("key", 1) == b""
        assert await directory.current_ref("key") == 1

    async def test_old_revisions_are_kept(self, directory):
        await directory.ensure_exists("key")
        await directory.append("key", 1, b"first")
        await directory.append("key", 2, b"second")

        assert await directory.load("key", 1) == b"first"
        assert await directory.load("key", 2) == b"second"

    async def test_append_existing_ref_fails(self, directory):
        """Reusing a ref is refused and the stored content is untouched."""
        await directory.ensure_exists("key")
        await directory.append("key", 1, b"original")

        with pytest.raises(RevisionExists) as exc_info:
            await directory.append("key", 1, b"replacement")

        assert exc_info.value.ref == 1
        assert await directory.load("key", 1) == b"original"

    async def test_load_missing_ref(self, directory):
        await directory.ensure_exists("key")
        await directory.append("key", 1, b"x")

        with pytest.raises(RevisionNotFound):
            await directory.load("key", 2)

    async def test_load_missing_key(self, directory):
        with pytest.raises(RevisionNotFound):
            await directory.load("missing", 1)

    async def test_load_ref_zero(self, directory):
        await directory.ensure_exists("key")
        with pytest.raises(RevisionNotFound):
            await directory.load("key", 0)

    async def test_concurrent_append_same_ref_one_winner(self, directory):
        """Of many appends racing for one ref, exactly one succeeds."""
        await directory.ensure_exists("key")

        results = await asyncio.gather(
            *(directory.append("key", 1, f"writer{i}".encode()) for i in range(8)),
            return_exceptions=True,
        )

        winners = [r for r in results if r is None]
        losers = [r for r in results if isinstance(r, RevisionExists)]
        assert len(winners) == 1
        assert len(losers) == 7
        assert (await directory.load("key", 1)).startswith(b"writer")


@pytest.mark.asyncio
class TestEnsureExistsAndRevisions:
    """Test ensure_exists() and revisions()."""

    async def test_ensure_exists_is_idempotent(self, directory):
        await directory.ensure_exists("key")
        await directory.append("key", 1, b"x")
        await directory.ensure_exists("key")

        assert await directory.current_ref("key") == 1

    async def test_revisions_unwritten_key(self, directory):
        assert await directory.revisions("missing") == []

    async def test_revisions_ascending(self, directory):
        await directory.ensure_exists("key")
        for ref in range(1, 12):
            await directory.append("key", ref, b"x")

        assert await directory.revisions("key") == list(range(1, 12))


@pytest.mark.asyncio
class TestFileLayout:
    """Test the on-disk layout of FileRevisionDirectory."""

    async def test_one_file_per_ref(self, file_directory, storage_root):
        await file_directory.ensure_exists("settings")
        await file_directory.append("settings", 1, b"a")
        await file_directory.append("settings", 2, b"b")

        assert sorted(os.listdir(storage_root / "settings")) == ["1", "2"]
        assert (storage_root / "settings" / "2").read_bytes() == b"b"

    async def test_no_temporary_files_left(self, file_directory, storage_root):
        await file_directory.ensure_exists("key")
        await file_directory.append("key", 1, b"a")
        with pytest.raises(RevisionExists):
            await file_directory.append("key", 1, b"b")

        assert os.listdir(storage_root / "key") == ["1"]

    async def test_refs_sorted_numerically(self, file_directory, storage_root):
        """Ref 10 is newer than ref 9 even though '10' < '9' as text."""
        await file_directory.ensure_exists("key")
        for ref in range(1, 11):
            await file_directory.append("key", ref, str(ref).encode())

        assert await file_directory.current_ref("key") == 10
        assert await file_directory.load("key", 10) == b"10"

    async def test_stray_entries_ignored(self, file_directory, storage_root):
        await file_directory.ensure_exists("key")
        await file_directory.append("key", 1, b"a")
        key_dir = storage_root / "key"
        (key_dir / ".tmp-abc123").write_bytes(b"partial")
        (key_dir / "notes.txt").write_bytes(b"x")
        (key_dir / "007").write_bytes(b"x")

        assert await file_directory.current_ref("key") == 1
        assert await file_directory.revisions("key") == [1]

    async def test_existing_layout_is_read(self, storage_root):
        """Revisions written by another process are picked up by scanning."""
        key_dir = storage_root / "key"
        key_dir.mkdir(parents=True)
        (key_dir / "1").write_bytes(b"one")
        (key_dir / "2").write_bytes(b"two")

        directory = FileRevisionDirectory(storage_root)
        assert await directory.current_ref("key") == 2
        assert await directory.load("key", 2) == b"two"

    async def test_unusable_root_is_storage_unavailable(self, tmp_path):
        root = tmp_path / "not-a-directory"
        root.write_bytes(b"")
        directory = FileRevisionDirectory(root)

        with pytest.raises(StorageUnavailable):
            await directory.ensure_exists("key")

    async def test_append_without_directory_is_storage_unavailable(self, file_directory):
        with pytest.raises(StorageUnavailable):
            await file_directory.append("never-prepared", 1, b"x")


class TestParseRefName:
    """Test parse_ref_name()."""

    def test_decimal_names(self):
        assert parse_ref_name("1") == 1
        assert parse_ref_name("42") == 42

    @pytest.mark.parametrize("name", ["", "0", "007", "-1", "1.txt", ".tmp-1", "²", "1 "])
    def test_rejected_names(self, name):
        assert parse_ref_name(name) is None
