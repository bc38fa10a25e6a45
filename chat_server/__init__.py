"""
Chat server package.

Main exports:
- Server: Listening socket and accept loop
- Session: Individual client handler
- SessionRegistry: Live sessions and broadcast
- BindError: Raised when the listening socket cannot be acquired
"""

from chat_server.registry import SessionRegistry
from chat_server.server import BindError, Server
from chat_server.session import Session

__version__ = "1.0.0"
__all__ = ['Server', 'Session', 'SessionRegistry', 'BindError']
