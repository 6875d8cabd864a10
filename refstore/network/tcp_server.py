"""
Async TCP Server Module

This module implements the asynchronous TCP server for ref-store.

Each connection is served by one coroutine which reads request lines,
reads the length-framed body of WRITE requests, calls the versioned
store and writes the response back. Expected store outcomes (conflicts,
cache hits, missing revisions) become status lines; they are not errors
of the server.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from collections import Counter
from typing import Optional

from ..config.settings import settings
from ..protocol.commands import Command, CommandType, Response
from ..protocol.parser import ProtocolParser
from ..store.results import Outcome, Result
from ..store.versioned import VersionedStore

logger = logging.getLogger(__name__)


class RefStoreServer:
    """
    Asynchronous TCP server for the ref-store service.

    This server handles multiple concurrent clients using asyncio.
    Each client connection is handled in a separate coroutine; all of
    them share one VersionedStore, whose correctness under concurrent
    writers rests on the revision directory's atomic append rather than
    on anything the server does.

    Features:
    - Non-blocking I/O with asyncio
    - Persistent connections (multiple commands per connection)
    - Idle connections closed after a timeout
    - Graceful error handling and connection cleanup

    Usage:
        store = VersionedStore(FileRevisionDirectory('/srv/ref-store'))
        server = RefStoreServer(host='0.0.0.0', port=3000, store=store)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number (e.g., 3000)
        store: The VersionedStore shared by all connections
        timeout: Seconds a connection may stay idle (None = forever)
        parser: The ProtocolParser for parsing commands
    """

    def __init__(
            self,
            store: VersionedStore,
            host: str = None,
            port: int = None,
            timeout: Optional[float] = None,
    ):
        """
        Initialize the server.

        Args:
            store: VersionedStore instance to serve
            host: Bind address (default from settings)
            port: Port number (default from settings)
            timeout: Idle timeout in seconds (default from settings,
                     0 or less disables it)
        """
        self.store = store
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        timeout = timeout if timeout is not None else settings.CONNECTION_TIMEOUT
        self.timeout = timeout if timeout and timeout > 0 else None
        self.parser = ProtocolParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._total_requests = 0
        self._outcomes: Counter = Counter()

    async def _receive(self, awaitable):
        """Await a read from the client, bounded by the idle timeout."""
        if self.timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    async def _send(self, writer: StreamWriter, response: Response) -> None:
        writer.write(self.parser.format_response(response))
        await writer.drain()

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Protocol flow:
            1. Read a request line from the client
            2. Parse it using ProtocolParser
            3. For WRITE, read exactly <length> body bytes
            4. Execute the command on the VersionedStore
            5. Format and send the response
            6. Repeat until QUIT, disconnect or idle timeout

        A WRITE with a malformed header ends the connection after the
        error response, since the size of the body that follows it is
        unknown.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                try:
                    data = await self._receive(reader.readline())
                except ValueError:
                    # Request line longer than the stream limit
                    await self._send(writer, Response.error("line too long"))
                    break

                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                try:
                    raw = data.decode().rstrip('\r\n')
                except UnicodeDecodeError:
                    await self._send(writer, Response.error("invalid encoding"))
                    continue

                command = self.parser.parse_request(raw)

                if command.type == CommandType.QUIT:
                    logger.debug(f"Client requested quit: {addr}")
                    break

                if not command.is_valid:
                    await self._send(writer, Response.error("invalid command"))
                    if command.type == CommandType.WRITE:
                        logger.debug(f"Malformed WRITE from {addr}, closing")
                        break
                    continue

                body = b""
                if command.type == CommandType.WRITE:
                    body = await self._receive(reader.readexactly(command.length))

                self._total_requests += 1
                response = await self._execute_command(command, body)
                await self._send(writer, response)

        except asyncio.TimeoutError:
            logger.debug(f"Idle timeout for client: {addr}")
        except asyncio.IncompleteReadError:
            logger.debug(f"Client disconnected mid-request: {addr}")
        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass

    async def _execute_command(self, command: Command, body: bytes = b"") -> Response:
        """
        Execute a parsed command on the store.

        Args:
            command: The Command object to execute
            body: Content of a WRITE request

        Returns:
            Response object with the result
        """
        if command.type == CommandType.READ:
            result = await self.store.read(command.key, if_none_match=command.ref)
        elif command.type == CommandType.REVISION:
            result = await self.store.read_revision(command.key, command.ref)
        elif command.type == CommandType.HISTORY:
            result = await self.store.history(command.key)
        elif command.type == CommandType.WRITE:
            result = await self.store.write(command.key, command.ref, body)
        else:
            return Response.error("invalid command")

        self._outcomes[result.outcome.name] += 1
        return self._to_response(command, result)

    @staticmethod
    def _to_response(command: Command, result: Result) -> Response:
        """Map a store Result onto the wire response for command."""
        if result.outcome == Outcome.OK:
            if command.type == CommandType.HISTORY:
                return Response.refs_response(result.refs)
            if result.content is None:
                # WRITE, or READ of a key that was never written
                return Response.ref_response(result.ref)
            return Response.content_response(result.ref, result.content)

        if result.outcome == Outcome.NOT_MODIFIED:
            return Response.not_modified(result.ref)
        if result.outcome == Outcome.CONFLICT:
            return Response.conflict()
        if result.outcome == Outcome.NOT_FOUND:
            return Response.not_found()
        if result.outcome == Outcome.INVALID_KEY:
            return Response.error("invalid key")
        return Response.error("storage unavailable")

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Runs until cancelled or stopped.

        Example:
            server = RefStoreServer(store, port=3000)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=settings.READ_BUFFER_SIZE,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Closes the server and waits for it to fully shut down.
        """
        if self._server is None:
            return

        self._server.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with connection and request counts and a count of
            store outcomes by name (OK, CONFLICT, ...).
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "outcomes": dict(self._outcomes),
        }
