"""
Main chat server implementation.

Handles the listening socket, per-connection threads, and server lifecycle.
"""

import argparse
import logging
import socket
import sys
import threading

from chat_server.registry import SessionRegistry
from chat_server.session import Session

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 45000


class BindError(OSError):
    """The listening socket could not be acquired."""


class Server:
    """
    Threaded line-based chat server.

    Features:
    - One thread per connected client
    - Broadcast of every line to all live sessions
    - /nick and /q commands
    """

    def __init__(self, host=DEFAULT_HOST, port=DEFAULT_PORT):
        """
        Initialize server.

        Args:
            host: Address to bind ("0.0.0.0" or "::" for all interfaces)
            port: Port to listen on (0 picks a free port)
        """
        self.host = host
        self.port = port
        self.registry = SessionRegistry()
        self.sock = None
        self.listening = threading.Event()
        self.stopping = False

    @property
    def server_address(self):
        """(host, port) actually bound, or None before listen()."""
        if self.sock is None or self.sock.fileno() == -1:
            return None
        return self.sock.getsockname()[:2]

    def _bind(self):
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        try:
            return socket.create_server((self.host, self.port), family=family)
        except OSError as e:
            raise BindError(e.errno, f"Cannot listen on {self.host}:{self.port}: {e.strerror}") from e

    def listen(self):
        """
        Bind and accept clients until stop() is called.

        Blocks; run it on a background thread if the caller needs to keep going.

        Raises:
            BindError: the address could not be bound.
            OSError: accept failed for a reason other than stop().
        """
        self.sock = self._bind()
        self.listening.set()
        if self.stopping:
            self.sock.close()
            return
        logger.info(f"Server running on {self.server_address}")
        while True:
            try:
                conn, addr = self.sock.accept()
            except OSError as e:
                if self.stopping:
                    logger.info("Server stopped")
                    return
                logger.error(f"Accept failed: {e}")
                raise
            session = Session(conn, addr, self.registry)
            self.registry.add(session)
            if self.stopping:
                # accepted while stop() was closing sessions
                session.close()
            thread = threading.Thread(
                target=self.session_handler,
                args=(session,),
                name=f"session-{session.format_addr()}",
                daemon=True,
            )
            thread.start()

    def session_handler(self, session):
        """Run one session's receive loop and clean up after it."""
        addr = session.format_addr()
        logger.info(f"Client Connected: {addr}")
        try:
            session.run()
        except ConnectionError as e:
            logger.error(f"ERROR: {addr} has connection error: {e}")
        finally:
            self.registry.remove(session)
            session.close()
            logger.info(f"Client Disconnected: {addr}")

    def stop(self):
        """
        Close the listening socket and every live session.

        Session threads are not joined; each one exits once its read
        observes the closed socket.
        """
        self.stopping = True
        if self.sock is not None:
            try:
                self.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # not supported on listening sockets everywhere
                pass
            self.sock.close()
        sessions = self.registry.snapshot()
        for session in sessions:
            session.close()
        logger.info(f"Stopping server, closed {len(sessions)} session(s)")


def main():
    """Entry point for server"""
    parser = argparse.ArgumentParser(description="Chat Server")
    parser.add_argument('--host', default=DEFAULT_HOST, help='Address to bind')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT, help='Port to listen on')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    # setup logging
    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    server = Server(args.host, args.port)

    def wait_for_enter():
        # returns on ENTER or when stdin is closed
        sys.stdin.readline()
        server.stop()

    threading.Thread(target=wait_for_enter, name="stdin-watch", daemon=True).start()
    print("Press ENTER to stop the server")
    try:
        server.listen()
    except BindError as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        server.stop()


if __name__ == "__main__":
    main()
