"""
Program Derived Addresses (PDA)

A PDA is an address computed from a list of seeds and a program id. No
private key exists for it: derivation rejects any hash that lands on the
Ed25519 curve, so only the owning program can "sign" for it, by presenting
the seeds at invocation time.

The search walks bump seeds from 255 down to 0 and takes the first one
whose address is off-curve. The same seeds and program id always produce
the same (address, bump).

Based on: https://solana.com/docs/core/pda
"""

import hashlib
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple, Union

from ..config import MAX_SEED_LEN, MAX_SEEDS, PDA_MARKER
from ..core.errors import InvalidSeedsError, MaxSeedLengthExceededError, NoValidBumpFoundError
from ..core.identity import is_on_curve


Seed = Union[bytes, bytearray, memoryview, str]


def seed_from_address(pubkey: str) -> bytes:
    """Raw 32 bytes of an address, for use as a seed."""
    return bytes.fromhex(pubkey)


def seed_from_u64(value: int) -> bytes:
    """Little-endian u64 encoding of an integer, for use as a seed."""
    return value.to_bytes(8, 'little')


def normalize_seeds(seeds: Iterable[Seed]) -> Tuple[bytes, ...]:
    """Convert seeds to bytes (strings become UTF-8)."""
    return tuple(seed.encode() if isinstance(seed, str) else bytes(seed) for seed in seeds)


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise MaxSeedLengthExceededError(f"{len(seeds)} seeds given, at most {MAX_SEEDS} allowed")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise MaxSeedLengthExceededError(f"Seed of {len(seed)} bytes exceeds {MAX_SEED_LEN}")


def create_program_address(seeds: Iterable[Seed], program_id: str) -> str:
    """
    Hash seeds and program id into an address.

    Raises InvalidSeedsError if the result is on the curve, i.e. could have
    a private key. The bump, if any, must already be the last seed.
    """
    seeds = normalize_seeds(seeds)
    _check_seeds(seeds)

    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes.fromhex(program_id))
    hasher.update(PDA_MARKER)
    digest = hasher.digest()

    if is_on_curve(digest):
        raise InvalidSeedsError("Derived address is on the Ed25519 curve")
    return digest.hex()


def find_program_address(seeds: Iterable[Seed], program_id: str) -> Tuple[str, int]:
    """
    Find the canonical (address, bump) for seeds under program_id.

    The seed list may hold at most 15 seeds, since the bump takes the last
    slot.
    """
    seeds = normalize_seeds(seeds)
    _check_seeds(seeds + (b"\x00",))

    for bump in range(255, -1, -1):
        try:
            return create_program_address(seeds + (bytes([bump]),), program_id), bump
        except InvalidSeedsError:
            continue

    raise NoValidBumpFoundError(f"No off-curve address for {len(seeds)} seeds under {program_id[:8]}...")


@dataclass(frozen=True)
class DerivedAddress:
    """A derivation request together with its result."""
    seeds: Tuple[bytes, ...]
    program_id: str
    address: str
    bump: int

    @property
    def signer_seeds(self) -> Tuple[bytes, ...]:
        """Seeds including the bump, as presented when signing for the PDA."""
        return self.seeds + (bytes([self.bump]),)

    def __str__(self) -> str:
        return f"PDA({self.address[:8]}..., bump={self.bump})"


def derive(seeds: Iterable[Seed], program_id: str) -> DerivedAddress:
    """Derive a PDA and return the full derivation record."""
    seeds = normalize_seeds(seeds)
    address, bump = find_program_address(seeds, program_id)
    return DerivedAddress(seeds=seeds, program_id=program_id, address=address, bump=bump)


class PDAGenerator:
    """
    Derives PDAs for one program and remembers what it derived.

    Derivation is pure, so caching only saves the bump search.
    """

    def __init__(self, program_id: str):
        self.program_id = program_id
        self._cache: Dict[Tuple[bytes, ...], DerivedAddress] = {}

    def derive(self, seeds: Iterable[Seed]) -> DerivedAddress:
        seeds = normalize_seeds(seeds)
        derived = self._cache.get(seeds)
        if derived is None:
            derived = self._cache[seeds] = derive(seeds, self.program_id)
        return derived

    def derived(self) -> List[DerivedAddress]:
        """Everything derived so far, in derivation order."""
        return list(self._cache.values())

    def owns(self, address: str) -> bool:
        return any(d.address == address for d in self._cache.values())
