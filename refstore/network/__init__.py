"""Network module for ref-store."""

from .tcp_server import RefStoreServer

__all__ = ["RefStoreServer"]
