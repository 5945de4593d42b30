"""
keyfix: Diffie-Hellman echo protocol and key-fixing relay.

An initiator and a responder agree on an AES-128 key with classic
Diffie-Hellman and exchange one CBC-encrypted message. The relay sits
between them and swaps both public values for the modulus P, which pins
the shared secret to 0 and lets it read the traffic.

Basic Usage:
    >>> from keyfix import Responder, Relay, Initiator
    >>>
    >>> seen = []
    >>> with Responder().create_server() as bob:
    ...     eve = Relay("127.0.0.1", bob.actual_port, on_intercept=seen.append)
    ...     with eve.create_server() as relay:
    ...         reply = Initiator("127.0.0.1", relay.actual_port).run(b"hello")
    >>> reply
    b'hello'
    >>> seen[0].plaintext
    b'hello'
"""

__version__ = "1.0.0"

# Cryptographic primitives
from .crypto.group import Group, DomainError, SMALL_GROUP, MODP_1536_GROUP, get_group
from .crypto.session import DHSession, StateError, new_session
from .crypto.cbc import DecryptError
from .crypto.utils import RandomSource, SystemRandomSource, SeededRandomSource

# Protocol
from .protocol.frame import Frame, MessageType, DecodeError, ProtocolError
from .protocol.message import ExchangeMessage, EncryptedPayload
from .protocol.state import ConnectionState

# Channel and roles
from .channel.stream import StreamChannel, TransportError, ConnectionClosedError
from .channel.server import ConnectionServer
from .channel.initiator import Initiator
from .channel.responder import Responder
from .channel.relay import Relay, Interception, fixed_key

# Configuration
from .config import KeyfixConfig, ConfigError

__all__ = [
    '__version__',

    # Cryptographic primitives
    'Group',
    'DomainError',
    'SMALL_GROUP',
    'MODP_1536_GROUP',
    'get_group',
    'DHSession',
    'StateError',
    'new_session',
    'DecryptError',
    'RandomSource',
    'SystemRandomSource',
    'SeededRandomSource',

    # Protocol
    'Frame',
    'MessageType',
    'DecodeError',
    'ProtocolError',
    'ExchangeMessage',
    'EncryptedPayload',
    'ConnectionState',

    # Channel and roles
    'StreamChannel',
    'TransportError',
    'ConnectionClosedError',
    'ConnectionServer',
    'Initiator',
    'Responder',
    'Relay',
    'Interception',
    'fixed_key',

    # Configuration
    'KeyfixConfig',
    'ConfigError',
]
