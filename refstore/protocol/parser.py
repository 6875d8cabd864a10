"""
Protocol Parser Module

This module handles parsing of raw protocol commands and formatting of responses.
"""

from typing import List, Optional

from .commands import Command, CommandType, Response
from ..config.settings import settings

UNCONDITIONAL = "*"


class ProtocolParser:
    """
    Parser for the ref-store protocol.

    Protocol Format:
        Request:  <COMMAND> [ARGS...]\\n [body]
        Response: <STATUS> [DATA]\\n [body]

    Commands:
        READ <key> [ref]                  -> OK <ref> <len>\\n<body> | OK 0 | NOT_MODIFIED <ref>
        REVISION <key> <ref>              -> OK <ref> <len>\\n<body> | NOT_FOUND
        HISTORY <key>                     -> OK [ref ...]
        WRITE <key> <ref|*> <len>\\n<body> -> OK <new ref> | CONFLICT
        QUIT                              -> (connection closed)

    Any command may also answer ERROR <reason>.

    Constraints:
        - Keys: max 256 characters, no whitespace
        - Refs: non-negative decimal integers; '*' on WRITE means
          "write whatever the current ref is"
        - WRITE bodies: raw bytes, at most MAX_CONTENT_LENGTH
    """

    def __init__(self):
        """Initialize the parser with constraints from settings."""
        self.max_key_length = settings.MAX_KEY_LENGTH
        self.max_content_length = settings.MAX_CONTENT_LENGTH

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request line into a Command object.

        Args:
            data: Raw request line (may include trailing newline)

        Returns:
            Command object representing the parsed request.
            Returns Command with type=UNKNOWN for invalid/malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("WRITE settings 3 12")
            >>> cmd.type == CommandType.WRITE
            True
            >>> (cmd.key, cmd.ref, cmd.length)
            ('settings', 3, 12)
        """
        raw = data.strip()
        if not raw:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        parts = raw.split()
        command_name = parts[0].upper()

        if command_name == "READ":
            return self._parse_read(parts, raw)
        if command_name == "REVISION":
            return self._parse_revision(parts, raw)
        if command_name == "HISTORY":
            return self._parse_history(parts, raw)
        if command_name == "WRITE":
            return self._parse_write(parts, raw)
        if command_name == "QUIT":
            if len(parts) == 1:
                return Command(type=CommandType.QUIT, raw=raw)
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.UNKNOWN, raw=raw)

    def _parse_read(self, parts: List[str], raw: str) -> Command:
        """
        Parse a READ command.

        Format: READ <key> [if-none-match ref]
        """
        if len(parts) not in (2, 3) or len(parts[1]) > self.max_key_length:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        ref = None
        if len(parts) == 3:
            ref = self._parse_ref(parts[2])
            if ref is None:
                return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.READ, key=parts[1], ref=ref, raw=raw)

    def _parse_revision(self, parts: List[str], raw: str) -> Command:
        """
        Parse a REVISION command.

        Format: REVISION <key> <ref>
        """
        if len(parts) != 3 or len(parts[1]) > self.max_key_length:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        ref = self._parse_ref(parts[2])
        if ref is None:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.REVISION, key=parts[1], ref=ref, raw=raw)

    def _parse_history(self, parts: List[str], raw: str) -> Command:
        """
        Parse a HISTORY command.

        Format: HISTORY <key>
        """
        if len(parts) != 2 or len(parts[1]) > self.max_key_length:
            return Command(type=CommandType.UNKNOWN, raw=raw)

        return Command(type=CommandType.HISTORY, key=parts[1], raw=raw)

    def _parse_write(self, parts: List[str], raw: str) -> Command:
        """
        Parse a WRITE command header.

        Format: WRITE <key> <expected ref|*> <length>

        A malformed header still comes back as a WRITE, with length -1,
        so the caller knows a body of unknown size may follow.
        """
        malformed = Command(type=CommandType.WRITE, length=-1, raw=raw)
        if len(parts) != 4 or len(parts[1]) > self.max_key_length:
            return malformed

        if parts[2] == UNCONDITIONAL:
            ref = None
        else:
            ref = self._parse_ref(parts[2])
            if ref is None:
                return malformed

        length = self._parse_ref(parts[3])
        if length is None or length > self.max_content_length:
            return malformed

        return Command(
            type=CommandType.WRITE,
            key=parts[1],
            ref=ref,
            length=length,
            raw=raw,
        )

    @staticmethod
    def _parse_ref(token: str) -> Optional[int]:
        """Parse a non-negative decimal integer, None if it is not one."""
        if not token.isascii() or not token.isdigit():
            return None
        return int(token)

    def format_response(self, response: Response) -> bytes:
        """
        Format a Response object into protocol bytes.

        Args:
            response: Response object to format

        Returns:
            Status line WITH trailing newline, followed by the raw body
            when the response carries one.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.ref_response(2))
            b'OK 2\\n'
            >>> parser.format_response(Response.content_response(2, b"hi"))
            b'OK 2 2\\nhi'
            >>> parser.format_response(Response.conflict())
            b'CONFLICT\\n'
        """
        prefix = response.status.value
        if response.message:
            line = f"{prefix} {response.message}\n"
        else:
            line = f"{prefix}\n"

        if response.body is not None:
            return line.encode() + response.body
        return line.encode()
