"""
Client session handling.

One Session per accepted connection: a blocking receive loop that parses
lines into commands, and a locked send path shared with broadcasts.
"""

import logging
import random
import socket
import threading

logger = logging.getLogger(__name__)

JOIN_NOTICE = "A new user joined the room"
RESERVED_NICKNAMES = ("*", "ERROR")


class Session:
    """
    Represents a single connected client.

    Manages:
    - The connection socket (owned exclusively by this session)
    - Nickname and command dispatch
    - Serialized writes from broadcasts and replies
    """

    def __init__(self, conn, addr, registry):
        """
        Initialize session.

        Args:
            conn: Accepted socket for this client
            addr: Client address tuple (host, port, ...)
            registry: SessionRegistry used for broadcasting
        """
        self.conn = conn
        self.addr = addr
        self.registry = registry
        self.nickname = f"User #{random.getrandbits(32)}"
        self.send_lock = threading.Lock()
        self.close_lock = threading.Lock()
        self.closed = False

    def format_addr(self):
        """Format address as IP:Port string."""
        return f"{self.addr[0]}:{self.addr[1]}"

    def send(self, text):
        """
        Write one line to the client.

        Safe to call from any thread; concurrent callers never interleave
        within a line.

        Raises:
            ConnectionError: the session is closed or the write failed.
        """
        if not text.endswith("\n"):
            text += "\n"
        data = text.encode("utf-8")
        with self.send_lock:
            if self.closed:
                raise ConnectionError(f"Session {self.format_addr()} is closed")
            try:
                self.conn.sendall(data)
            except OSError as e:
                if isinstance(e, ConnectionError):
                    raise
                raise ConnectionError(f"Write to {self.format_addr()} failed: {e}") from e

    def close(self):
        """Close the connection. A blocked run() wakes up with EOF."""
        with self.close_lock:
            if self.closed:
                return
            self.closed = True
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            # peer already gone
            pass
        self.conn.close()

    def run(self):
        """
        Main receive loop.

        Blocks until the client quits, the stream ends, or a read fails.
        The caller removes the session from the registry afterwards.

        Raises:
            ConnectionError: reading from the socket failed.
        """
        self.registry.broadcast(JOIN_NOTICE)
        try:
            with self.conn.makefile("rb") as stream:
                for raw in stream:
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    logger.debug(f"Received from {self.format_addr()}: {line}")
                    if not self.handle_line(line):
                        return
        except OSError as e:
            # closed locally (quit or server stop), not a read failure
            if self.closed:
                return
            if isinstance(e, ConnectionError):
                raise
            raise ConnectionError(f"Read from {self.format_addr()} failed: {e}") from e
        logger.debug(f"{self.format_addr()} reached EOF")

    def handle_line(self, line):
        """
        Dispatch one protocol line.

        Returns:
            False once the session should stop reading, True otherwise.
        """
        parts = line.split(" ", 1)
        if not parts:
            return True
        command = parts[0]
        rest = parts[1] if len(parts) > 1 else ""

        if command == "/q":
            self.registry.broadcast(f"{self.nickname} left the room")
            self.close()
            return False
        elif command == "/nick":
            new_nickname = rest.strip()
            if new_nickname and new_nickname not in RESERVED_NICKNAMES:
                self.registry.broadcast(f"* {self.nickname} new nickname is {new_nickname}")
                logger.info(f"{self.format_addr()} renamed {self.nickname} -> {new_nickname}")
                self.nickname = new_nickname
            else:
                logger.debug(f"Ignoring invalid nickname from {self.format_addr()}: {rest!r}")
        else:
            self.registry.broadcast(f"{self.nickname}: {line}")
        return True
