"""
Session registry.

Keeps the set of live sessions and fans broadcast lines out to them.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Thread-safe collection of live sessions.

    The lock is only held while mutating the list or copying it, so a slow
    client blocked in send() never stops other threads from joining or leaving.
    """

    def __init__(self):
        self.sessions = []
        self.lock = threading.Lock()

    def __len__(self):
        with self.lock:
            return len(self.sessions)

    def __contains__(self, session):
        with self.lock:
            return any(s is session for s in self.sessions)

    def add(self, session):
        """Register a freshly accepted session."""
        with self.lock:
            self.sessions.append(session)
            count = len(self.sessions)
        logger.debug(f"Registered {session.format_addr()} ({count} live)")

    def remove(self, session):
        """
        Unregister a session.

        Removing a session that is not registered is a no-op, so the quit path
        and the server's cleanup can both call this.
        """
        with self.lock:
            for i, s in enumerate(self.sessions):
                if s is session:
                    del self.sessions[i]
                    break
            else:
                return False
        logger.debug(f"Unregistered {session.format_addr()}")
        return True

    def snapshot(self):
        """Return a copy of the live sessions."""
        with self.lock:
            return list(self.sessions)

    def broadcast(self, text):
        """
        Send text to every registered session.

        Delivery is sequential over a snapshot. A session whose connection
        fails is skipped; its own receive loop will notice and remove it.

        Returns:
            Number of sessions the text was delivered to.
        """
        delivered = 0
        for session in self.snapshot():
            try:
                session.send(text)
                delivered += 1
            except ConnectionError as e:
                logger.warning(f"Broadcast to {session.format_addr()} failed: {e}")
        return delivered
