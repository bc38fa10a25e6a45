"""
Main client implementation
Handles connection with the server, message sending, background receiving and listener dispatch
"""

import argparse
import logging
import socket
import sys
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 45000
QUIT_COMMAND = "/q"


class MessageListener:
    """
    Receives events from a ChatClient.

    Both methods are called on the client's receive thread, never on the
    thread that called connect(). Implementations that touch shared state
    need their own locking.
    """

    def on_message(self, message: str) -> None:
        """Handle one line received from the server."""

    def on_error(self, error: Exception) -> None:
        """Handle a receive failure. The connection is unusable afterwards."""


class ChatClient():
    """
    Threaded client for the chat server

    Features:
    - Line sending with the quit command closing the connection
    - Background receive thread feeding registered listeners
    - Errors reported only through listeners, never raised on the receive thread
    """
    def __init__(self, host: str, port: int) -> None:
        """
        Initialize client
        Args:
            host: hostname or ip of the server to connect to
            port: port of the server to connect to
        """
        self.host = host
        self.port = port
        self.sock: Optional[socket.socket] = None
        self.receiver: Optional[threading.Thread] = None
        self.listeners: List[MessageListener] = []
        self.listeners_lock = threading.Lock()
        self.send_lock = threading.Lock()
        self.closed = False

    def add_listener(self, listener: MessageListener) -> None:
        """Subscribe listener to message and error events"""
        with self.listeners_lock:
            self.listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        """Unsubscribe listener; unknown listeners are ignored"""
        with self.listeners_lock:
            if listener in self.listeners:
                self.listeners.remove(listener)

    def connect(self) -> None:
        """
        Connect to the server and start the receive thread

        Raises:
            ConnectionError: the server could not be reached
        """
        try:
            self.sock = socket.create_connection((self.host, self.port))
        except OSError as e:
            logger.error(f"ERROR: Cannot connect to {self.host}:{self.port}: {e}")
            if isinstance(e, ConnectionError):
                raise
            raise ConnectionError(f"Cannot connect to {self.host}:{self.port}: {e}") from e
        logger.info(f"Connected to {self.host}:{self.port}")
        self.receiver = threading.Thread(
            target=self.receive_messages,
            name=f"receiver-{self.host}:{self.port}",
            daemon=True,
        )
        self.receiver.start()

    def send_message(self, message: str) -> None:
        """
        Send one line to the server

        Raises:
            ConnectionError: the client is not connected, already closed, or the write failed
        """
        with self.send_lock:
            if self.sock is None or self.closed:
                raise ConnectionError("Client is not connected")
            try:
                self.sock.sendall(message.encode("utf-8") + b"\n")
            except OSError as e:
                logger.error(f"Send failed: {e}")
                if isinstance(e, ConnectionError):
                    raise
                raise ConnectionError(f"Send failed: {e}") from e
            if message == QUIT_COMMAND:
                self._release()

    def close(self) -> None:
        """Send the quit command and release the connection"""
        if self.sock is None or self.closed:
            return
        try:
            self.send_message(QUIT_COMMAND)
        except ConnectionError as e:
            logger.debug(f"Quit not delivered: {e}")
        finally:
            with self.send_lock:
                self._release()

    def _release(self) -> None:
        # caller holds send_lock
        if self.closed:
            return
        self.closed = True
        try:
            self.sock.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        self.sock.close()
        logger.info("Disconnected from server")

    def _snapshot_listeners(self) -> List[MessageListener]:
        with self.listeners_lock:
            return list(self.listeners)

    def receive_messages(self) -> None:
        """Read lines until EOF or error and hand them to the listeners"""
        try:
            with self.sock.makefile("rb") as stream:
                for raw in stream:
                    message = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    logger.debug(f"Received: {message}")
                    for listener in self._snapshot_listeners():
                        try:
                            listener.on_message(message)
                        except Exception:
                            logger.exception(f"Listener {listener!r} failed on message")
            logger.info("Server disconnected")
        except OSError as e:
            if self.closed:
                logger.debug(f"Receiver stopped after close: {e}")
                return
            logger.error(f"Connection ERROR: {e}")
            error = e if isinstance(e, ConnectionError) else ConnectionError(str(e))
            for listener in self._snapshot_listeners():
                try:
                    listener.on_error(error)
                except Exception:
                    logger.exception(f"Listener {listener!r} failed on error")


class ConsoleListener(MessageListener):
    """Prints received lines to stdout"""

    def on_message(self, message: str) -> None:
        print(f"\r{message}")
        print("> ", end="", flush=True)

    def on_error(self, error: Exception) -> None:
        print(f"\rDisconnected: {error}")


def send_user_input(client: ChatClient, finished: threading.Event) -> None:
    """Read user input and send it to the server until /q or EOF on stdin"""
    try:
        for line in sys.stdin:
            message = line.rstrip("\r\n")
            client.send_message(message)
            if message == QUIT_COMMAND:
                break
    except ConnectionError as e:
        logger.error(f"Connection ERROR: {e}")
    finally:
        finished.set()


def watch_receiver(client: ChatClient, finished: threading.Event) -> None:
    """Flag the end of the session once the receive thread exits"""
    client.receiver.join()
    finished.set()


def main():
    parser = argparse.ArgumentParser(description="Chat Client")
    parser.add_argument('--host', default=DEFAULT_HOST, help='Server host')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT, help='Server port')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()
    # setup logging
    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    client = ChatClient(host=args.host, port=args.port)
    client.add_listener(ConsoleListener())
    try:
        client.connect()
    except ConnectionError:
        print("Is the server running?")
        print("Is the port correct?")
        sys.exit(1)

    print("Type to chat, /nick <name> to rename, /q to quit")
    # whichever side ends first (server gone or user done) ends the client
    finished = threading.Event()
    threading.Thread(target=send_user_input, args=(client, finished), name="stdin-reader", daemon=True).start()
    threading.Thread(target=watch_receiver, args=(client, finished), name="receiver-watch", daemon=True).start()
    try:
        finished.wait()
    except KeyboardInterrupt:
        logger.info("\nClient Stopped by user")
    finally:
        client.close()


if __name__ == "__main__":
    main()
