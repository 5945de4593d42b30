"""
Connection state machine shared by all roles.

AWAITING_EXCHANGE -> KEY_ESTABLISHED -> EXCHANGING_ENCRYPTED_MESSAGES -> CLOSED

Any state may move to CLOSED.
"""

import logging
from enum import Enum

from .frame import MessageType, ProtocolError

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    AWAITING_EXCHANGE = 'awaiting_exchange'
    KEY_ESTABLISHED = 'key_established'
    EXCHANGING_ENCRYPTED_MESSAGES = 'exchanging_encrypted_messages'
    CLOSED = 'closed'


_TRANSITIONS = {
    ConnectionState.AWAITING_EXCHANGE: {ConnectionState.KEY_ESTABLISHED, ConnectionState.CLOSED},
    ConnectionState.KEY_ESTABLISHED: {
        ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES,
        ConnectionState.CLOSED,
    },
    ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES: {
        ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES,
        ConnectionState.CLOSED,
    },
    ConnectionState.CLOSED: set(),
}

# Frame types each state accepts
_ACCEPTS = {
    ConnectionState.AWAITING_EXCHANGE: {MessageType.EXCHANGE},
    ConnectionState.KEY_ESTABLISHED: {MessageType.ENCRYPTED},
    ConnectionState.EXCHANGING_ENCRYPTED_MESSAGES: {MessageType.ENCRYPTED},
    ConnectionState.CLOSED: set(),
}


class StateMachine:
    """
    Tracks one connection's protocol state.

    Only legal transitions are allowed; anything else is a ProtocolError.
    """

    def __init__(self, name: str = "connection"):
        self.name = name
        self.state = ConnectionState.AWAITING_EXCHANGE

    def advance(self, new_state: ConnectionState) -> None:
        """
        Move to a new state.

        Raises:
            ProtocolError: If the transition is not allowed
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise ProtocolError(
                f"{self.name}: illegal transition {self.state.name} -> {new_state.name}"
            )
        if new_state != self.state:
            logger.debug(f"{self.name}: {self.state.name} -> {new_state.name}")
        self.state = new_state

    def check_frame(self, message_type: MessageType) -> None:
        """
        Verify a frame type is acceptable in the current state.

        Raises:
            ProtocolError: If it is not
        """
        if message_type not in _ACCEPTS[self.state]:
            raise ProtocolError(
                f"{self.name}: {message_type.name} frame not allowed in state {self.state.name}"
            )

    def close(self) -> None:
        if self.state != ConnectionState.CLOSED:
            self.advance(ConnectionState.CLOSED)

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED
