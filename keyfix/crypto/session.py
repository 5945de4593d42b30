"""
Diffie-Hellman session.

A session owns one private exponent over one group and performs exactly one
key agreement. The symmetric key is the first 16 bytes of SHA-1 over the
minimal big-endian encoding of the shared secret.

The arithmetic is done faithfully for every peer value, including values
congruent to zero mod P. Such a value forces the shared secret to zero and
the key to SHA1(b"")[:16] whatever the private exponent is.
"""

import logging
from typing import Optional

from cryptography.hazmat.primitives import hashes

from .group import Group, DomainError
from .utils import RandomSource, default_random_source, int_to_bytes

logger = logging.getLogger(__name__)

KEY_LENGTH = 16  # AES-128


class StateError(Exception):
    """Raised when an operation is not valid in the session's current state."""
    pass


def derive_symmetric_key(shared_secret: int) -> bytes:
    """
    Hash a shared secret down to a symmetric key.

    Args:
        shared_secret: Non-negative DH shared secret

    Returns:
        KEY_LENGTH-byte key
    """
    digest = hashes.Hash(hashes.SHA1())
    digest.update(int_to_bytes(shared_secret))
    return digest.finalize()[:KEY_LENGTH]


class DHSession:
    """
    One side of a Diffie-Hellman key agreement.

    The private exponent is drawn uniformly from [1, P-1) and the public value
    is computed at construction. ``derive_key`` may be called once per peer
    value; repeating it with the same value returns the same key.
    """

    def __init__(self, group: Group, random_source: Optional[RandomSource] = None):
        """
        Create a session over a group.

        Args:
            group: DH group parameters
            random_source: Source for the private exponent (system RNG if omitted)

        Raises:
            DomainError: If the group modulus is too small
        """
        if group.p <= 2:
            raise DomainError(f"Modulus must be greater than 2, got {group.p}")

        self.group = group
        self._random = random_source or default_random_source()
        self._private = self._random.randrange(1, group.p - 1)
        self.public_key = pow(group.g, self._private, group.p)

        self._peer_public: Optional[int] = None
        self._shared_secret: Optional[int] = None
        self._key: Optional[bytes] = None

    @property
    def has_key(self) -> bool:
        """Whether key agreement has happened."""
        return self._key is not None

    @property
    def key(self) -> bytes:
        """
        The derived symmetric key.

        Raises:
            StateError: If no key has been derived yet
        """
        if self._key is None:
            raise StateError("No key has been derived for this session")
        return self._key

    @property
    def shared_secret(self) -> int:
        """
        The DH shared secret.

        Raises:
            StateError: If no key has been derived yet
        """
        if self._shared_secret is None:
            raise StateError("No shared secret has been computed for this session")
        return self._shared_secret

    @property
    def peer_public_key(self) -> Optional[int]:
        """Peer value the key was derived from, if any."""
        return self._peer_public

    def derive_key(self, peer_public: int) -> bytes:
        """
        Agree on a key with a peer.

        Args:
            peer_public: The peer's public value

        Returns:
            The derived symmetric key

        Raises:
            StateError: If a key was already derived from a different peer value
            DomainError: If the peer value is negative
        """
        if peer_public < 0:
            raise DomainError("Peer public value must be non-negative")

        if self._key is not None:
            if peer_public != self._peer_public:
                raise StateError("Session key already derived from a different peer value")
            return self._key

        secret = pow(peer_public, self._private, self.group.p)
        self._peer_public = peer_public
        self._shared_secret = secret
        self._key = derive_symmetric_key(secret)

        logger.debug(f"Derived session key over {self.group.p.bit_length()}-bit group")
        return self._key

    def public_bytes(self) -> bytes:
        """Big-endian encoding of the public value."""
        return int_to_bytes(self.public_key)

    def __repr__(self) -> str:
        state = 'keyed' if self.has_key else 'awaiting peer'
        return f"DHSession(p_bits={self.group.p.bit_length()}, public_key={self.public_key}, {state})"


def new_session(group: Group, random_source: Optional[RandomSource] = None) -> DHSession:
    """
    Create a DH session over a group.

    Args:
        group: DH group parameters
        random_source: Optional RandomSource

    Returns:
        Fresh DHSession
    """
    return DHSession(group, random_source)
