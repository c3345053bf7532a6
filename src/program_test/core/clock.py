"""
Logical Slot Clock

Time in the harness is a slot counter that only moves when a test asks it
to. Nothing advances it implicitly, not even transaction submission, so a
scenario always knows exactly which slot it is in.

Each time the clock moves it extends a SHA-256 hash chain (in the spirit of
Proof of History) and registers the new head as the latest blockhash.
Transactions must reference one of the recent heads to be accepted.

Based on: https://docs.solanalabs.com/implemented-proposals/bank-timestamp-correction
"""

import hashlib
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from ..config import MAX_SLOT, HarnessConfig
from .errors import NegativeAdvanceError, SlotOverflowError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Clock:
    """
    Snapshot of the clock as programs see it (Solana's Clock sysvar).

    The timestamp is derived from the slot, never from the wall clock.
    """
    slot: int
    epoch_start_timestamp: int
    epoch: int
    leader_schedule_epoch: int
    unix_timestamp: int

    def __str__(self) -> str:
        return f"Clock(slot={self.slot}, epoch={self.epoch}, ts={self.unix_timestamp})"


class BlockhashQueue:
    """
    The last N blockhashes, oldest first.

    A blockhash is valid for as long as it stays in the queue.
    """

    def __init__(self, max_age: int):
        self.max_age = max_age
        self._hashes: 'OrderedDict[str, int]' = OrderedDict()  # hash -> slot registered

    def register(self, blockhash: str, slot: int) -> None:
        self._hashes[blockhash] = slot
        self._hashes.move_to_end(blockhash)
        while len(self._hashes) > self.max_age:
            self._hashes.popitem(last=False)

    def latest(self) -> str:
        return next(reversed(self._hashes))

    def slot_of(self, blockhash: str) -> Optional[int]:
        return self._hashes.get(blockhash)

    def __contains__(self, blockhash: str) -> bool:
        return blockhash in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)


class ClockController:
    """
    Owns the slot counter and the blockhash chain.

    The slot never decreases. advance() and warp_to_slot() are the only
    ways to move it.
    """

    def __init__(self, config: Optional[HarnessConfig] = None):
        self.config = config or HarnessConfig()
        self._slot = 0
        self._hash = hashlib.sha256(self.config.genesis_seed.encode()).hexdigest()
        self.blockhashes = BlockhashQueue(self.config.max_recent_blockhashes)
        self.blockhashes.register(self._hash, self._slot)

    def current_slot(self) -> int:
        """Current slot number."""
        return self._slot

    def advance(self, slots: int) -> int:
        """
        Move the clock forward by slots.

        Returns the new slot. Advancing by zero is allowed and still
        produces a fresh blockhash. A rejected call leaves the slot and the
        blockhash chain untouched.
        """
        if isinstance(slots, bool) or not isinstance(slots, int):
            raise TypeError(f"Slot count must be an int, got {type(slots).__name__}")
        if slots < 0:
            raise NegativeAdvanceError(slots)
        if self._slot + slots > MAX_SLOT:
            raise SlotOverflowError(self._slot, slots)

        slot = self._slot + slots
        blockhash = self._next_hash(slot)
        self._slot = slot
        self._hash = blockhash
        self.blockhashes.register(blockhash, slot)
        logger.info("Advanced clock by %d slots to slot %d", slots, self._slot)
        return self._slot

    def warp_to_slot(self, slot: int) -> int:
        """Jump to an absolute slot, which must not be in the past."""
        return self.advance(slot - self._slot)

    def get_clock(self) -> Clock:
        """Snapshot of the Clock sysvar for the current slot."""
        slots_per_epoch = self.config.slots_per_epoch
        epoch = self._slot // slots_per_epoch
        epoch_start_slot = epoch * slots_per_epoch
        return Clock(
            slot=self._slot,
            epoch_start_timestamp=self._timestamp_at(epoch_start_slot),
            epoch=epoch,
            leader_schedule_epoch=epoch + 1,
            unix_timestamp=self._timestamp_at(self._slot),
        )

    def latest_blockhash(self) -> str:
        """Most recently issued blockhash."""
        return self.blockhashes.latest()

    def is_blockhash_valid(self, blockhash: str) -> bool:
        """Check if blockhash is recent enough for transactions."""
        return blockhash in self.blockhashes

    def _timestamp_at(self, slot: int) -> int:
        return self.config.genesis_unix_timestamp + (slot * self.config.slot_duration_ms) // 1000

    def _next_hash(self, slot: int) -> str:
        """Hash the slot into the current chain head."""
        return hashlib.sha256(bytes.fromhex(self._hash) + slot.to_bytes(8, 'little')).hexdigest()
