"""
Bit-level packing of Huffman codes into bytes

Codes are the '0'/'1' strings produced by huffman.generate_huffman_codes.
Bits go out most-significant-bit first; a trailing partial byte is shifted
into the high bits and zero-padded at the low end.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Iterator, Mapping

from config import CompressionConfig
from errors import UnknownSymbolError
from huffman import iter_chunks


@dataclass
class EncodeResult:
    total_bits: int     # code bits, padding excluded
    bytes_written: int
    pad_bits: int       # zero bits added to the final byte


class BitPacker:
    """
    Accumulates code bits and writes each completed byte straight to a binary sink

    Only the current partial byte (acc / acc_bits) is held between calls;
    batching the writes is left to the sink's own buffering.
    """

    def __init__(self, sink):
        self.sink = sink
        self.acc = 0
        self.acc_bits = 0
        self.total_bits = 0
        self.bytes_written = 0

    def _emit(self, byte: int) -> None:
        self.sink.write(bytes((byte,)))
        self.bytes_written += 1

    def write_code(self, code: str) -> None:
        acc, acc_bits = self.acc, self.acc_bits
        for ch in code:
            acc = (acc << 1) | (1 if ch == '1' else 0)
            acc_bits += 1
            if acc_bits == 8:
                self._emit(acc)
                acc = 0
                acc_bits = 0
        self.acc, self.acc_bits = acc, acc_bits
        self.total_bits += len(code)

    def close(self) -> int:
        """Emit the final partial byte (if any) and return the number of pad bits"""
        pad_bits = 0
        if self.acc_bits != 0:
            pad_bits = 8 - self.acc_bits
            self._emit((self.acc << pad_bits) & 0xFF)
            self.acc = 0
            self.acc_bits = 0
        return pad_bits


def encode_stream(stream, code_table: Mapping[int, str], sink,
                  config: CompressionConfig = None) -> EncodeResult:
    """
    Re-read the input and write each symbol's code, in order, to sink
    Raises UnknownSymbolError for a symbol missing from code_table
    """
    config = config or CompressionConfig()
    packer = BitPacker(sink)
    for chunk in iter_chunks(stream, config):
        for symbol in chunk:
            code = code_table.get(symbol)
            if code is None:
                raise UnknownSymbolError(symbol)
            packer.write_code(code)

    pad_bits = packer.close()
    return EncodeResult(total_bits=packer.total_bits, bytes_written=packer.bytes_written, pad_bits=pad_bits)


def encode_bytes(data: bytes, code_table: Mapping[int, str], config: CompressionConfig = None) -> bytes:
    sink = BytesIO()
    encode_stream(BytesIO(data), code_table, sink, config)
    return sink.getvalue()


def packed_size(total_bits: int) -> int: # bytes needed for total_bits, i.e. ceil(total_bits / 8)
    return (total_bits + 7) // 8


def iter_bits(packed: bytes, total_bits: int) -> Iterator[int]:
    """Yield the first total_bits bits of packed, MSB first, skipping the padding tail"""
    bit_index = 0
    for byte in packed:
        for i in range(7, -1, -1):
            if bit_index >= total_bits:
                return
            yield (byte >> i) & 1
            bit_index += 1
