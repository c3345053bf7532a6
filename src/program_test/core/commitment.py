"""Commitment levels for transaction submission."""

from enum import IntEnum


class CommitmentLevel(IntEnum):
    """
    How settled a transaction must be before the caller treats it as done.

    Ordered: PROCESSED < CONFIRMED < FINALIZED.
    """
    PROCESSED = 0
    CONFIRMED = 1
    FINALIZED = 2
