"""
Signer Identities

A Keypair is a test actor: an Ed25519 signing key plus the 32-byte public
address derived from it. The private half never leaves the Keypair; callers
only get the address and an opaque sign() capability.

Addresses throughout the harness are the 32 raw bytes rendered as 64
lowercase hex characters.

Based on: https://solana.com/docs/core/accounts#keypair
"""

from typing import Optional, Union

from ecdsa import BadSignatureError, SigningKey, VerifyingKey
from ecdsa.curves import Ed25519
from ecdsa.errors import MalformedPointError


ADDRESS_LENGTH = 32


class Keypair:
    """
    An Ed25519 keypair identifying a signer.

    Use Keypair.generate() for a fresh random identity, or
    Keypair.from_seed() when a test needs the same address on every run.
    """

    def __init__(self, signing_key: Optional[SigningKey] = None):
        if signing_key is None:
            signing_key = SigningKey.generate(curve=Ed25519)
        self._signing_key = signing_key
        self._pubkey = signing_key.verifying_key.to_string().hex()

    @classmethod
    def generate(cls) -> 'Keypair':
        """Create a new identity with a random key."""
        return cls()

    @classmethod
    def from_seed(cls, seed: bytes) -> 'Keypair':
        """Create a reproducible identity from a 32-byte secret seed."""
        if len(seed) != ADDRESS_LENGTH:
            raise ValueError(f"Seed must be {ADDRESS_LENGTH} bytes, got {len(seed)}")
        return cls(SigningKey.from_string(bytes(seed), curve=Ed25519))

    @property
    def pubkey(self) -> str:
        """Public address of this identity."""
        return self._pubkey

    def address(self) -> str:
        """Public address of this identity, the same value as pubkey."""
        return self._pubkey

    def sign(self, payload: bytes) -> bytes:
        """Sign payload, returning the 64-byte Ed25519 signature."""
        return self._signing_key.sign(payload)

    def __eq__(self, other) -> bool:
        return isinstance(other, Keypair) and other._pubkey == self._pubkey

    def __hash__(self) -> int:
        return hash(self._pubkey)

    def __repr__(self) -> str:
        return f"Keypair({self._pubkey[:8]}...)"


Signer = Union[Keypair, str]


def signer_pubkey(signer: Signer) -> str:
    """Address of a signer given either as a Keypair or as a bare address."""
    return signer.pubkey if isinstance(signer, Keypair) else signer


def verify_signature(pubkey: str, signature: bytes, payload: bytes) -> bool:
    """Check an Ed25519 signature against an address."""
    try:
        verifying_key = VerifyingKey.from_string(bytes.fromhex(pubkey), curve=Ed25519)
        return verifying_key.verify(signature, payload)
    except (BadSignatureError, MalformedPointError, ValueError):
        return False


def is_on_curve(address_bytes: bytes) -> bool:
    """
    Whether 32 bytes decode to a point on the Ed25519 curve.

    Only on-curve addresses can have a private key, so derived addresses
    must fail this check.
    """
    try:
        VerifyingKey.from_string(bytes(address_bytes), curve=Ed25519)
    except MalformedPointError:
        return False
    return True


def is_valid_address(pubkey: str) -> bool:
    """Whether pubkey is a well-formed 64-character hex address."""
    if len(pubkey) != ADDRESS_LENGTH * 2:
        return False
    try:
        bytes.fromhex(pubkey)
    except ValueError:
        return False
    return True
