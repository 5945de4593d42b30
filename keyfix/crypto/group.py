"""
Diffie-Hellman group parameters.

A group is just a prime modulus and a generator. Groups supplied by a peer
are accepted as given; only parameters that make the arithmetic meaningless
are rejected.
"""

from dataclasses import dataclass
from typing import Dict

from .utils import parse_hex


class DomainError(Exception):
    """Raised when group parameters are mathematically invalid."""
    pass


@dataclass(frozen=True)
class Group:
    """
    Immutable (P, G) pair.

    Fields:
        p: Prime modulus, must be greater than 2
        g: Generator, must be positive
    """
    p: int
    g: int

    def __post_init__(self):
        """Validate group parameters."""
        for value in (self.p, self.g):
            if not isinstance(value, int) or isinstance(value, bool):
                raise DomainError(f"Group parameters must be integers, got {value!r}")
        if self.p <= 2:
            raise DomainError(f"Modulus must be greater than 2, got {self.p}")
        if self.g <= 0:
            raise DomainError(f"Generator must be positive, got {self.g}")

    def to_dict(self) -> Dict[str, str]:
        """Hex-encode the parameters for the wire."""
        return {'p': format(self.p, 'x'), 'g': format(self.g, 'x')}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> 'Group':
        """Rebuild a group from its wire form."""
        return cls(p=parse_hex(data['p']), g=parse_hex(data['g']))


# Toy group used by the reference client
SMALL_GROUP = Group(p=37, g=5)

# RFC 3526 1536-bit MODP group (group 5)
MODP_1536_HEX = (
    "ffffffffffffffffc90fdaa22168c234c4c6628b80dc1cd129024e088a67cc74"
    "020bbea63b139b22514a08798e3404ddef9519b3cd3a431b302b0a6df25f1437"
    "4fe1356d6d51c245e485b576625e7ec6f44c42e9a637ed6b0bff5cb6f406b7ed"
    "ee386bfb5a899fa5ae9f24117c4b1fe649286651ece45b3dc2007cb8a163bf05"
    "98da48361c55d39a69163fa8fd24cf5f83655d23dca3ad961c62f356208552bb"
    "9ed529077096966d670c354e4abc9804f1746c08ca237327ffffffffffffffff"
)
MODP_1536_GROUP = Group(p=int(MODP_1536_HEX, 16), g=2)

NAMED_GROUPS = {
    'small': SMALL_GROUP,
    'modp1536': MODP_1536_GROUP,
}


def get_group(name: str) -> Group:
    """
    Look up a named group.

    Args:
        name: One of the keys of NAMED_GROUPS

    Returns:
        The matching Group

    Raises:
        DomainError: If the name is unknown
    """
    try:
        return NAMED_GROUPS[name.lower()]
    except KeyError:
        raise DomainError(f"Unknown group '{name}', expected one of {sorted(NAMED_GROUPS)}")
