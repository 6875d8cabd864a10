#!/usr/bin/env python3
"""
Interactive Client for ref-store

A simple command-line client for reading and writing ref-store keys.
Like an editor syncing its settings, it remembers the last ref it saw
for each key and sends it as the expected ref of the next write, so a
write made elsewhere in the meantime is reported as a conflict instead
of being overwritten.

Usage:
    python scripts/client.py                  # Connect to localhost:3000
    python scripts/client.py --host 1.2.3.4   # Connect to specific host
    python scripts/client.py --port 8080      # Connect to specific port

Commands:
    read <key>                - Read the current revision
    write <key> <text...>     - Write against the last ref seen for key
    force <key> <text...>     - Write unconditionally
    revision <key> <ref>      - Read an older revision
    history <key>             - List every ref of a key
    help                      - Show this help
    exit                      - Exit client
"""

import argparse
import socket
import sys
from typing import Dict, Optional, Tuple

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


class RefStoreClient:
    """Simple blocking TCP client for ref-store."""

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket = None
        self.stream = None
        self.refs: Dict[str, int] = {}

    def connect(self) -> bool:
        """Connect to the server."""
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
            self.stream = self.socket.makefile("rb")
            return True
        except OSError as e:
            print(f"Connection error: {e}")
            return False

    def disconnect(self):
        """Disconnect from the server."""
        if self.socket:
            try:
                self.stream.close()
                self.socket.close()
            except OSError:
                pass
            self.socket = None
            self.stream = None

    def request(self, line: str, body: Optional[bytes] = None) -> Tuple[str, Optional[bytes]]:
        """
        Send one request and receive its response.

        Returns:
            (status line, body) where body is only set for responses
            that carry revision content
        """
        payload = line.encode("utf-8") + b"\n"
        if body is not None:
            payload += body
        self.socket.sendall(payload)

        status = self.stream.readline()
        if not status:
            raise ConnectionError("Connection closed by server")
        status = status.decode("utf-8").rstrip("\r\n")

        parts = status.split()
        if line.split()[0].upper() in ("READ", "REVISION") and parts[0] == "OK" and len(parts) == 3:
            return status, self.stream.read(int(parts[2]))
        return status, None

    def read(self, key: str) -> Tuple[str, Optional[bytes]]:
        status, content = self.request(f"READ {key}")
        parts = status.split()
        if parts[0] == "OK":
            self.refs[key] = int(parts[1])
        return status, content

    def write(self, key: str, content: bytes, unconditional: bool = False) -> str:
        expected = "*" if unconditional else str(self.refs.get(key, 0))
        status, _ = self.request(f"WRITE {key} {expected} {len(content)}", content)
        parts = status.split()
        if parts[0] == "OK":
            self.refs[key] = int(parts[1])
        return status

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def print_help():
    """Print help message."""
    print("""
ref-store Commands:
-------------------
  read <key>                Read the current revision of a key
  write <key> <text...>     Write against the last ref seen for the key
  force <key> <text...>     Write without checking the current ref
  revision <key> <ref>      Read a specific revision
  history <key>             List every ref written for a key

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
  reconnect                 Reconnect to the server
  status                    Show connection status and known refs

Examples:
---------
  read settings             -> OK 0 (never written)
  write settings {}         -> OK 1
  write settings {"a": 1}   -> OK 2
  revision settings 1       -> OK 1 2 / {}
""")


def run_command(client: RefStoreClient, command: str) -> None:
    """Execute one interactive command and print the outcome."""
    parts = command.split(None, 2)
    name = parts[0].lower()

    if name == "read" and len(parts) == 2:
        status, content = client.read(parts[1])
        print(status)
        if content is not None:
            print(content.decode("utf-8", errors="replace"))
    elif name in ("write", "force") and len(parts) == 3:
        status = client.write(parts[1], parts[2].encode("utf-8"), unconditional=name == "force")
        print(status)
        if status == "CONFLICT":
            print(f"'{parts[1]}' changed since it was last read; read it again before writing")
    elif name == "revision" and len(parts) == 3:
        status, content = client.request(f"REVISION {parts[1]} {parts[2]}")
        print(status)
        if content is not None:
            print(content.decode("utf-8", errors="replace"))
    elif name == "history" and len(parts) == 2:
        status, _ = client.request(f"HISTORY {parts[1]}")
        print(status)
    else:
        print("Unknown command. Type 'help' for commands.")


def main():
    parser = argparse.ArgumentParser(
        description="Interactive client for ref-store"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="localhost",
        help="Server host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Server port (default: 3000)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )

    args = parser.parse_args()

    print("ref-store Client")
    print("================")
    print(f"Connecting to {args.host}:{args.port}...")

    client = RefStoreClient(args.host, args.port, args.timeout)

    if not client.connect():
        print("Failed to connect. Is the server running?")
        print(f"  Try: python -m refstore.server --storage memory --port {args.port}")
        sys.exit(1)

    print("Connected! Type 'help' for commands.\n")

    try:
        while True:
            try:
                command = input(">>> ").strip()

                if not command:
                    continue

                lower_cmd = command.lower()

                if lower_cmd == "help":
                    print_help()
                    continue

                if lower_cmd in ("exit", "quit"):
                    try:
                        client.request("QUIT")
                    except (OSError, ConnectionError):
                        pass
                    print("Goodbye!")
                    break

                if lower_cmd == "reconnect":
                    client.disconnect()
                    if client.connect():
                        print("Reconnected!")
                    else:
                        print("Reconnection failed.")
                    continue

                if lower_cmd == "status":
                    status = "Connected" if client.socket else "Disconnected"
                    print(f"Status: {status}")
                    print(f"Server: {args.host}:{args.port}")
                    for key, ref in sorted(client.refs.items()):
                        print(f"  {key}: ref {ref}")
                    continue

                try:
                    run_command(client, command)
                except socket.timeout:
                    print("ERROR: Request timed out")
                except (OSError, ConnectionError) as e:
                    print(f"ERROR: {e}")

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
