"""
Channel layer components for keyfix.

This module provides networking and the protocol roles:
- Framed stream channels over TCP
- Threaded accept loop
- Initiator, Responder and Relay
"""

from .stream import StreamChannel, TransportError, ConnectionClosedError, connect
from .server import ConnectionServer, CONNECTION_ERRORS
from .initiator import Initiator, DEFAULT_MESSAGE
from .responder import Responder
from .relay import Relay, Interception, fixed_key

__all__ = [
    'StreamChannel',
    'TransportError',
    'ConnectionClosedError',
    'connect',
    'ConnectionServer',
    'CONNECTION_ERRORS',
    'Initiator',
    'DEFAULT_MESSAGE',
    'Responder',
    'Relay',
    'Interception',
    'fixed_key',
]
