"""
Protocol layer components for keyfix.

This module provides:
- Frame encoding and parsing
- EXCHANGE and ENCRYPTED payloads
- The connection state machine
"""

from .frame import Frame, MessageType, DecodeError, ProtocolError, encode_frame, decode_frame
from .message import ExchangeMessage, EncryptedPayload, decode_payload
from .state import ConnectionState, StateMachine

__all__ = [
    'Frame',
    'MessageType',
    'DecodeError',
    'ProtocolError',
    'encode_frame',
    'decode_frame',
    'ExchangeMessage',
    'EncryptedPayload',
    'decode_payload',
    'ConnectionState',
    'StateMachine',
]
