"""
Frame payloads for keyfix.

Payloads are UTF-8 JSON objects so they can be decoded without an external
schema. Each frame type has exactly one payload class:

EXCHANGE  -> ExchangeMessage   {"group": {"p": hex, "g": hex}, "public_key": hex}
ENCRYPTED -> EncryptedPayload  {"body": base64(ciphertext || iv)}
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Union

from ..crypto.cbc import BLOCK_SIZE, DecryptError, split_body
from ..crypto.group import Group, DomainError
from ..crypto.utils import parse_hex
from .frame import Frame, MessageType, DecodeError


def _load_json(payload: bytes) -> dict:
    try:
        obj = json.loads(payload.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Payload is not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise DecodeError("Payload must be a JSON object")
    return obj


def _dump_json(obj: dict) -> bytes:
    return json.dumps(obj, separators=(',', ':'), sort_keys=True).encode('utf-8')


@dataclass(frozen=True)
class ExchangeMessage:
    """
    Handshake payload: the group and the sender's public value.

    Fields:
        group: DH group parameters
        public_key: Sender's public value (or whatever a relay put in its place)
    """
    group: Group
    public_key: int

    message_type = MessageType.EXCHANGE

    def to_bytes(self) -> bytes:
        """Serialize to JSON payload bytes."""
        return _dump_json({
            'group': self.group.to_dict(),
            'public_key': format(self.public_key, 'x'),
        })

    @classmethod
    def from_bytes(cls, payload: bytes) -> 'ExchangeMessage':
        """
        Parse an EXCHANGE payload.

        Raises:
            DecodeError: If fields are missing or malformed
            DomainError: If the group parameters are invalid
        """
        obj = _load_json(payload)
        try:
            group = Group.from_dict(obj['group'])
            public_key = parse_hex(obj['public_key'])
        except DomainError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Malformed exchange payload: {e}") from e

        return cls(group=group, public_key=public_key)

    def with_public_key(self, public_key: int) -> 'ExchangeMessage':
        """Copy of this message carrying a different public value."""
        return ExchangeMessage(group=self.group, public_key=public_key)

    def to_frame(self) -> Frame:
        return Frame(self.message_type, self.to_bytes())


@dataclass(frozen=True)
class EncryptedPayload:
    """
    Application payload: AES-CBC ciphertext with its IV.

    Fields:
        ciphertext: Encrypted data
        iv: 16-byte initialization vector
    """
    ciphertext: bytes
    iv: bytes

    message_type = MessageType.ENCRYPTED

    @property
    def body(self) -> bytes:
        """Wire body, IV appended."""
        return self.ciphertext + self.iv

    def to_bytes(self) -> bytes:
        """Serialize to JSON payload bytes."""
        return _dump_json({'body': base64.b64encode(self.body).decode('ascii')})

    @classmethod
    def from_body(cls, body: bytes) -> 'EncryptedPayload':
        """
        Split a ``ciphertext || iv`` body.

        Raises:
            DecryptError: If the body cannot hold an IV
        """
        ciphertext, iv = split_body(body)
        return cls(ciphertext=ciphertext, iv=iv)

    @classmethod
    def from_bytes(cls, payload: bytes) -> 'EncryptedPayload':
        """
        Parse an ENCRYPTED payload.

        Raises:
            DecodeError: If the JSON or base64 is malformed
            DecryptError: If the body is shorter than one IV
        """
        obj = _load_json(payload)
        try:
            body = base64.b64decode(obj['body'], validate=True)
        except (KeyError, TypeError, binascii.Error, ValueError) as e:
            raise DecodeError(f"Malformed encrypted payload: {e}") from e

        if len(body) < BLOCK_SIZE:
            raise DecryptError(f"Encrypted body too short: {len(body)} bytes")
        return cls.from_body(body)

    def to_frame(self) -> Frame:
        return Frame(self.message_type, self.to_bytes())


Payload = Union[ExchangeMessage, EncryptedPayload]

_PAYLOAD_TYPES = {
    MessageType.EXCHANGE: ExchangeMessage,
    MessageType.ENCRYPTED: EncryptedPayload,
}


def decode_payload(frame: Frame) -> Payload:
    """
    Decode a frame into its payload variant.

    Args:
        frame: Received frame

    Returns:
        ExchangeMessage or EncryptedPayload depending on the frame type
    """
    return _PAYLOAD_TYPES[frame.message_type].from_bytes(frame.payload)
