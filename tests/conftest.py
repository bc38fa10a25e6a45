import threading

import pytest

from chat_server.server import Server
from helpers import TIMEOUT, LineReader, RecordingRegistry


@pytest.fixture
def recording_registry():
    return RecordingRegistry()


@pytest.fixture
def running_server():
    """Server bound to a free localhost port, stopped after the test."""
    server = Server("127.0.0.1", 0)
    thread = threading.Thread(target=server.listen, daemon=True)
    thread.start()
    assert server.listening.wait(TIMEOUT), "server did not start"
    server.thread = thread
    yield server
    server.stop()
    thread.join(TIMEOUT)


@pytest.fixture
def connect(running_server):
    """Open raw connections that wait until their own join notice arrives."""
    readers = []

    def _connect():
        reader = LineReader(running_server.server_address)
        readers.append(reader)
        assert reader.readline() == "A new user joined the room\n"
        return reader

    yield _connect
    for reader in readers:
        reader.close()
