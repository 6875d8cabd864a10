"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from pathlib import Path
from typing import AsyncGenerator, List, Optional, Tuple

from refstore.network.tcp_server import RefStoreServer
from refstore.protocol.parser import ProtocolParser
from refstore.store.directory import FileRevisionDirectory, MemoryRevisionDirectory
from refstore.store.versioned import VersionedStore


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Directory Fixtures
# ============================================================================

class SpyDirectory(MemoryRevisionDirectory):
    """Memory directory that records every call made to it."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[Tuple[str, str]] = []

    async def current_ref(self, key):
        self.calls.append(("current_ref", key))
        return await super().current_ref(key)

    async def load(self, key, ref):
        self.calls.append(("load", key))
        return await super().load(key, ref)

    async def append(self, key, ref, content):
        self.calls.append(("append", key))
        await super().append(key, ref, content)

    async def ensure_exists(self, key):
        self.calls.append(("ensure_exists", key))
        await super().ensure_exists(key)

    async def revisions(self, key):
        self.calls.append(("revisions", key))
        return await super().revisions(key)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class GatedDirectory(MemoryRevisionDirectory):
    """
    Memory directory that holds every caller of current_ref() until
    `writers` callers have arrived, so they all see the same latest ref
    before any of them appends.
    """

    def __init__(self, writers: int) -> None:
        super().__init__()
        self.writers = writers
        self.arrived = 0
        self.gate = asyncio.Event()

    async def current_ref(self, key):
        ref = await super().current_ref(key)
        self.arrived += 1
        if self.arrived >= self.writers:
            self.gate.set()
        await self.gate.wait()
        return ref


class GatedFileDirectory(FileRevisionDirectory):
    """FileRevisionDirectory with the same current_ref() gate as GatedDirectory."""

    def __init__(self, root, writers: int) -> None:
        super().__init__(root)
        self.writers = writers
        self.arrived = 0
        self.gate = asyncio.Event()

    async def current_ref(self, key):
        ref = await super().current_ref(key)
        self.arrived += 1
        if self.arrived >= self.writers:
            self.gate.set()
        await self.gate.wait()
        return ref


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Storage root inside the test's temporary directory."""
    return tmp_path / "store"


@pytest.fixture
def file_directory(storage_root: Path) -> FileRevisionDirectory:
    return FileRevisionDirectory(storage_root)


@pytest.fixture
def memory_directory() -> MemoryRevisionDirectory:
    return MemoryRevisionDirectory()


@pytest.fixture(params=["fs", "memory"])
def directory(request, storage_root: Path):
    """Each revision directory backend in turn."""
    if request.param == "fs":
        return FileRevisionDirectory(storage_root)
    return MemoryRevisionDirectory()


@pytest.fixture
def spy_directory() -> SpyDirectory:
    return SpyDirectory()


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def store(directory) -> VersionedStore:
    """A VersionedStore over each backend in turn."""
    return VersionedStore(directory)


@pytest.fixture
def file_store(file_directory: FileRevisionDirectory) -> VersionedStore:
    return VersionedStore(file_directory)


@pytest.fixture
def spy_store(spy_directory: SpyDirectory) -> VersionedStore:
    return VersionedStore(spy_directory)


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


async def start_server(srv: RefStoreServer) -> asyncio.Task:
    """Start a server in a background task and wait for it to listen."""
    task = asyncio.create_task(srv.start())
    await asyncio.sleep(0.1)
    return task


async def stop_server(srv: RefStoreServer, task: asyncio.Task) -> None:
    await srv.stop()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@pytest_asyncio.fixture
async def server(
    server_port: int,
    file_store: VersionedStore,
) -> AsyncGenerator[RefStoreServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a RefStoreServer on a random free port over a store
       rooted in the test's temporary directory
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = RefStoreServer(store=file_store, host='127.0.0.1', port=server_port, timeout=0)
    task = await start_server(srv)

    yield srv

    await stop_server(srv, task)


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            assert await client.write("key", 0, b"value") == "OK 1"
            status, content = await client.read("key")
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except Exception:
                pass

    async def send_command(self, command: str, body: Optional[bytes] = None) -> str:
        """
        Send a request line (and optional body), return the status line.
        """
        if not command.endswith('\n'):
            command += '\n'

        self.writer.write(command.encode() + (body or b""))
        await self.writer.drain()

        response = await self.reader.readline()
        return response.decode().strip()

    async def read_content(self, status: str) -> Optional[bytes]:
        """Read the body announced by an 'OK <ref> <length>' status line."""
        parts = status.split()
        if parts[0] != "OK" or len(parts) != 3:
            return None
        return await self.reader.readexactly(int(parts[2]))

    async def read(self, key: str, if_none_match: Optional[int] = None) -> Tuple[str, Optional[bytes]]:
        command = f"READ {key}" if if_none_match is None else f"READ {key} {if_none_match}"
        status = await self.send_command(command)
        return status, await self.read_content(status)

    async def revision(self, key: str, ref: int) -> Tuple[str, Optional[bytes]]:
        status = await self.send_command(f"REVISION {key} {ref}")
        return status, await self.read_content(status)

    async def write(self, key: str, expected, content: bytes) -> str:
        expected = "*" if expected is None else expected
        return await self.send_command(f"WRITE {key} {expected} {len(content)}", content)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                status, content = await client.read("key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
