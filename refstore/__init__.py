"""
ref-store: Versioned Object Store

A small versioned object store served over raw TCP sockets with
Python asyncio. Every write appends a new immutable revision and
callers guard their writes with the ref they last read.
"""

__version__ = "1.0.0"
