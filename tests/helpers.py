"""
Shared helpers for the chat server and client tests.
"""
import socket
import time

TIMEOUT = 5.0


class RecordingRegistry:
    """Stands in for SessionRegistry and keeps every broadcast line."""

    def __init__(self):
        self.lines = []

    def broadcast(self, text):
        self.lines.append(text)
        return 1


def wait_for(predicate, timeout=TIMEOUT):
    """Poll predicate until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class LineReader:
    """Raw test connection to a running server."""

    def __init__(self, address):
        self.sock = socket.create_connection(address, timeout=TIMEOUT)
        self.stream = self.sock.makefile("rb")

    def send(self, line):
        self.sock.sendall(line.encode("utf-8") + b"\n")

    def readline(self):
        return self.stream.readline().decode("utf-8")

    def read_until(self, expected):
        """
        Read lines until one matches; return everything read.

        expected is either the exact line or a predicate over lines.
        """
        matches = expected if callable(expected) else expected.__eq__
        seen = []
        while True:
            line = self.readline()
            if not line:
                raise AssertionError(f"EOF before {expected!r}, got {seen}")
            seen.append(line)
            if matches(line):
                return seen

    def close(self):
        self.stream.close()
        self.sock.close()
