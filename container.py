"""
Framed output: the packed stream preceded by enough metadata to decode it

Layout (all integers big-endian):

    magic       4 bytes   b"HUF1"
    n_symbols   1 byte    distinct symbols minus one
    entries     n_symbols x (symbol: 1 byte, count: 8 bytes)
    total_bits  8 bytes   meaningful payload bits
    payload     ceil(total_bits / 8) bytes

The decoder rebuilds the tree from the stored counts. Tree construction is
deterministic, so it gets back exactly the codes the encoder used.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

from bitpack import iter_bits, packed_size
from errors import CorruptStreamError, EmptyInputError
from huffman import build_huffman_tree, huffman_decode

MAGIC = b"HUF1"
COUNT_BYTES = 8
TOTAL_BITS_BYTES = 8


def header_size(n_symbols: int) -> int:
    return len(MAGIC) + 1 + n_symbols * (1 + COUNT_BYTES) + TOTAL_BITS_BYTES


def pack_header(frequency_table: Mapping[int, int], total_bits: int) -> bytes:
    if not frequency_table:
        raise EmptyInputError("cannot write a header for an empty frequency table")

    out = bytearray(MAGIC)
    out.append(len(frequency_table) - 1)
    for symbol in sorted(frequency_table):
        out.append(symbol)
        out += frequency_table[symbol].to_bytes(COUNT_BYTES, "big")
    out += total_bits.to_bytes(TOTAL_BITS_BYTES, "big")
    return bytes(out)


def write_header(sink, frequency_table: Mapping[int, int], total_bits: int) -> int:
    header = pack_header(frequency_table, total_bits)
    sink.write(header)
    return len(header)


def read_header(blob: bytes) -> Tuple[Mapping[int, int], int, int]:
    """
    Parse the header at the start of blob
    Returns (frequency_table, total_bits, payload_offset)
    """
    mv = memoryview(blob)
    if len(mv) < len(MAGIC) + 1 or mv[:len(MAGIC)].tobytes() != MAGIC:
        raise CorruptStreamError("missing or unknown magic number")

    i = len(MAGIC)
    n_symbols = mv[i] + 1; i += 1
    if len(mv) < header_size(n_symbols):
        raise CorruptStreamError(f"header truncated: expected {header_size(n_symbols)} bytes, got {len(mv)}")

    frequencies = {}
    for _ in range(n_symbols):
        symbol = mv[i]; i += 1
        count = int.from_bytes(mv[i:i + COUNT_BYTES], "big"); i += COUNT_BYTES
        if symbol in frequencies:
            raise CorruptStreamError(f"symbol {symbol} listed twice in header")
        if count == 0:
            raise CorruptStreamError(f"symbol {symbol} has a zero count")
        frequencies[symbol] = count

    total_bits = int.from_bytes(mv[i:i + TOTAL_BITS_BYTES], "big"); i += TOTAL_BITS_BYTES
    return MappingProxyType(frequencies), total_bits, i


def decode_framed(blob: bytes) -> bytes:
    frequency_table, total_bits, offset = read_header(blob)
    payload = blob[offset:]
    if len(payload) < packed_size(total_bits):
        raise CorruptStreamError(
            f"payload truncated: need {packed_size(total_bits)} bytes for {total_bits} bits, got {len(payload)}"
        )

    root = build_huffman_tree(frequency_table)
    decoded = huffman_decode(iter_bits(payload, total_bits), root)

    expected = sum(frequency_table.values())
    if len(decoded) != expected:
        raise CorruptStreamError(f"decoded {len(decoded)} symbols, header promised {expected}")
    return decoded
