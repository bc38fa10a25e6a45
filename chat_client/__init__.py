"""
Chat client package.

Main exports:
- ChatClient: Connect/send/listen facade over one server connection
- MessageListener: Base class for message and error callbacks
"""

from chat_client.client import ChatClient, MessageListener

__all__ = ['ChatClient', 'MessageListener']
