"""
Compression settings

Passed explicitly into the frequency builder and the encoder instead of
living as module constants.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_CHUNK_SIZE = 1024 * 1024  # bytes per read
DEFAULT_TERMINATOR = 0


@dataclass(frozen=True)
class CompressionConfig:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    # Reading stops at the first byte equal to this value (the byte itself is
    # not a symbol). None makes reads binary-safe: everything up to EOF counts.
    terminator: Optional[int] = DEFAULT_TERMINATOR

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.terminator is not None and not 0 <= self.terminator <= 255:
            raise ValueError(f"terminator must be a byte value or None, got {self.terminator}")


BINARY_SAFE = CompressionConfig(terminator=None)
