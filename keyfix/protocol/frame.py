"""
Wire framing for keyfix.

Every message on the stream is one frame:

frame = type (1B) || length (4B, big-endian) || payload (length bytes)
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple


class MessageType(IntEnum):
    """Frame type tag."""
    EXCHANGE = 1
    ENCRYPTED = 2


class DecodeError(Exception):
    """Raised when frame bytes are malformed."""
    pass


class ProtocolError(Exception):
    """Raised when a frame arrives that the current protocol state does not allow."""
    pass


# Constants
HEADER_FORMAT = '!BI'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 1 + 4 bytes
MAX_PAYLOAD_SIZE = 1 << 20


@dataclass(frozen=True)
class Frame:
    """
    One typed, length-delimited protocol message.

    Fields:
        message_type: EXCHANGE or ENCRYPTED
        payload: Serialized payload bytes
    """
    message_type: MessageType
    payload: bytes

    def to_bytes(self) -> bytes:
        """Serialize the frame for the wire."""
        return encode_frame(self.message_type, self.payload)

    def expect(self, expected: MessageType) -> bytes:
        """
        Return the payload if the frame has the expected type.

        Raises:
            ProtocolError: On type mismatch
        """
        if self.message_type != expected:
            raise ProtocolError(
                f"Expected {expected.name} frame, received {self.message_type.name}"
            )
        return self.payload

    def __len__(self) -> int:
        return HEADER_SIZE + len(self.payload)


def encode_frame(message_type: MessageType, payload: bytes) -> bytes:
    """
    Build frame bytes.

    Args:
        message_type: Frame type
        payload: Serialized payload

    Returns:
        Header followed by payload

    Raises:
        DecodeError: If the payload exceeds MAX_PAYLOAD_SIZE
    """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise DecodeError(f"Payload too large: {len(payload)} bytes")
    return struct.pack(HEADER_FORMAT, int(message_type), len(payload)) + payload


def decode_header(header: bytes) -> Tuple[MessageType, int]:
    """
    Parse a frame header.

    Args:
        header: Exactly HEADER_SIZE bytes

    Returns:
        Tuple of (message_type, payload_length)

    Raises:
        DecodeError: On unknown type or oversized length
    """
    if len(header) != HEADER_SIZE:
        raise DecodeError(f"Header must be {HEADER_SIZE} bytes, got {len(header)}")

    raw_type, length = struct.unpack(HEADER_FORMAT, header)
    try:
        message_type = MessageType(raw_type)
    except ValueError:
        raise DecodeError(f"Unknown message type {raw_type}")

    if length > MAX_PAYLOAD_SIZE:
        raise DecodeError(f"Declared payload length {length} exceeds {MAX_PAYLOAD_SIZE}")

    return message_type, length


def decode_frame(data: bytes) -> Frame:
    """
    Parse one complete frame from a buffer.

    Raises:
        DecodeError: If the buffer is not exactly one frame
    """
    if len(data) < HEADER_SIZE:
        raise DecodeError(f"Frame too short: {len(data)} bytes")

    message_type, length = decode_header(data[:HEADER_SIZE])
    payload = data[HEADER_SIZE:]
    if len(payload) != length:
        raise DecodeError(f"Frame declares {length} payload bytes, found {len(payload)}")

    return Frame(message_type=message_type, payload=payload)
