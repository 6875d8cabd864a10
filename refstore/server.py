#!/usr/bin/env python3
"""
ref-store Server Entry Point

This is the main entry point for starting the ref-store server.

Usage:
    python -m refstore.server --root /srv/ref-store     # Default host/port (0.0.0.0:3000)
    python -m refstore.server --root DIR --port 8080    # Custom port
    python -m refstore.server --storage memory          # Keep revisions in memory
    python -m refstore.server --root DIR --debug        # Enable debug logging

Environment Variables:
    REF_STORE_HOST      - Server bind address
    REF_STORE_PORT      - Server port
    REF_STORE_ROOT      - Storage root directory
    REF_STORE_STORAGE   - Storage backend (fs/memory)
    REF_STORE_TIMEOUT   - Idle connection timeout in seconds
    REF_STORE_DEBUG     - Enable debug mode (true/false)
"""

import argparse
import asyncio
import logging
import signal
import sys

from .config.settings import settings
from .network.tcp_server import RefStoreServer
from .store.directory import FileRevisionDirectory, MemoryRevisionDirectory, RevisionDirectory
from .store.versioned import VersionedStore


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="ref-store: Versioned Object Store Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--root",
        type=str,
        default=settings.STORAGE_ROOT,
        help="Directory holding one sub-directory of revisions per key",
    )

    parser.add_argument(
        "--storage",
        choices=("fs", "memory"),
        default=settings.STORAGE_BACKEND,
        help="Where revisions are kept",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.CONNECTION_TIMEOUT,
        help="Seconds before an idle connection is closed (0 = never)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.storage == "fs" and not args.root:
        parser.error("--root (or REF_STORE_ROOT) is required for fs storage")
    return args


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def create_directory(args: argparse.Namespace) -> RevisionDirectory:
    """Create the revision directory selected on the command line."""
    if args.storage == "memory":
        return MemoryRevisionDirectory()
    return FileRevisionDirectory(args.root)


def main(argv=None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    directory = create_directory(args)
    store = VersionedStore(directory)
    server = RefStoreServer(
        store=store,
        host=args.host,
        port=args.port,
        timeout=args.timeout,
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        await server.stop()

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(shutdown(s))
            )

    logger.info("Starting ref-store server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Storage: {directory!r}")
    logger.info(f"  Idle timeout: {args.timeout}")
    logger.info(f"  Debug: {args.debug}")

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        loop.run_until_complete(server.stop())
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
