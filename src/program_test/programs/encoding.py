"""
Instruction Payload Encoding

Helpers for building and reading the argument bytes of Anchor-style
programs: an 8-byte discriminator naming the instruction, followed by
Borsh-encoded arguments (little-endian integers, u32-length-prefixed
strings). The harness itself treats payloads as opaque; these exist so
tests can speak the same format as the programs they drive.
"""

import hashlib


def anchor_discriminator(name: str, namespace: str = "global") -> bytes:
    """First 8 bytes of sha256("<namespace>:<name>")."""
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:8]


def encode_u64(value: int) -> bytes:
    if not 0 <= value < 2**64:
        raise ValueError(f"{value} does not fit in u64")
    return value.to_bytes(8, 'little')


def encode_string(value: str) -> bytes:
    raw = value.encode()
    return len(raw).to_bytes(4, 'little') + raw


class PayloadReader:
    """Sequential reader over an instruction payload."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    def take(self, size: int) -> bytes:
        if self.offset + size > len(self.data):
            raise ValueError(f"Payload too short: need {size} bytes at offset {self.offset}")
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def discriminator(self) -> bytes:
        return self.take(8)

    def u64(self) -> int:
        return int.from_bytes(self.take(8), 'little')

    def string(self) -> str:
        length = int.from_bytes(self.take(4), 'little')
        return self.take(length).decode()

    def remaining(self) -> int:
        return len(self.data) - self.offset
