"""
Protocol Command and Response Definitions

This module defines the data structures for protocol commands and responses.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional


class CommandType(Enum):
    """Enumeration of supported command types."""
    READ = auto()
    REVISION = auto()
    HISTORY = auto()
    WRITE = auto()
    QUIT = auto()
    UNKNOWN = auto()


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    NOT_MODIFIED = "NOT_MODIFIED"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        type: The type of command
        key: The key for the operation (empty for QUIT)
        ref: READ: the if-none-match ref; REVISION: the ref to fetch;
             WRITE: the expected ref, None for an unconditional write
        length: WRITE only: size of the body following the request line,
                -1 when the header could not be parsed
        raw: The original raw command string
    """
    type: CommandType
    key: str = ""
    ref: Optional[int] = None
    length: int = 0
    raw: str = ""

    def __post_init__(self):
        self.key = str(self.key) if self.key else ""

    @property
    def is_valid(self) -> bool:
        """Check if the command is valid for its type."""
        if self.type == CommandType.UNKNOWN:
            return False
        if self.type == CommandType.QUIT:
            return True
        if self.type in (CommandType.READ, CommandType.HISTORY):
            return bool(self.key)
        if self.type == CommandType.REVISION:
            return bool(self.key) and self.ref is not None
        if self.type == CommandType.WRITE:
            return bool(self.key) and self.length >= 0
        return False


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        status: Response status word
        message: Rest of the status line
        body: Raw content sent after the status line, if any
    """
    status: ResponseStatus
    message: str = ""
    body: Optional[bytes] = None

    @classmethod
    def ok(cls, message: str = "", body: Optional[bytes] = None) -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.OK, message=message, body=body)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response."""
        return cls(status=ResponseStatus.ERROR, message=message)

    @classmethod
    def content_response(cls, ref: int, content: bytes) -> "Response":
        """Create a READ/REVISION response carrying a revision."""
        return cls.ok(message=f"{ref} {len(content)}", body=content)

    @classmethod
    def ref_response(cls, ref: int) -> "Response":
        """Create a response naming a single ref (WRITE, empty READ)."""
        return cls.ok(message=str(ref))

    @classmethod
    def refs_response(cls, refs: List[int]) -> "Response":
        """Create a HISTORY response."""
        return cls.ok(message=" ".join(str(ref) for ref in refs))

    @classmethod
    def not_modified(cls, ref: int) -> "Response":
        return cls(status=ResponseStatus.NOT_MODIFIED, message=str(ref))

    @classmethod
    def conflict(cls) -> "Response":
        return cls(status=ResponseStatus.CONFLICT)

    @classmethod
    def not_found(cls) -> "Response":
        return cls(status=ResponseStatus.NOT_FOUND)
