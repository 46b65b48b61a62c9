#!/usr/bin/env python3
"""
Huffman file compressor

Runs the full pipeline: frequency table -> Huffman tree -> code table ->
bit-packed output. The input is read twice (once to count, once to encode).

Raw output (default) is just the packed code stream, with no header. It can
only be decoded by someone who already knows the code table. --framed
prefixes a header with the symbol counts so --decompress can invert it.

How to run:
  python compress.py input.txt output.huf
  python compress.py input.bin output.huf --binary --framed
  python compress.py --decompress output.huf restored.bin
"""

from __future__ import annotations

import argparse
import sys
from contextlib import nullcontext
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional

from bitpack import encode_stream
from config import DEFAULT_CHUNK_SIZE, DEFAULT_TERMINATOR, CompressionConfig
from container import decode_framed, write_header
from errors import CompressionError, EmptyInputError, IOFailureError
from huffman import build_code_table, build_frequency_table, encoded_bit_length


@dataclass
class CompressionStats:
    input_symbols: int
    distinct_symbols: int
    total_bits: int
    pad_bits: int
    header_bytes: int
    payload_bytes: int

    @property
    def output_bytes(self) -> int:
        return self.header_bytes + self.payload_bytes

    @property
    def compression_ratio(self) -> float: # compressed bytes / original bytes
        return self.output_bytes / max(1, self.input_symbols)


def _report(progress: Optional[Callable[[str], None]], message: str) -> None:
    if progress is not None:
        progress(message)


def compress_stream(open_input, open_output, config: CompressionConfig = None,
                    framed: bool = False, progress: Optional[Callable[[str], None]] = None) -> CompressionStats:
    """
    open_input / open_output: zero-argument callables returning context-managed
    binary streams. open_input is called twice. open_output is only called once
    the input is known to hold at least one symbol.
    """
    config = config or CompressionConfig()

    _report(progress, "Generating Frequency Table")
    with open_input() as stream:
        frequency_table = build_frequency_table(stream, config)
    if not frequency_table:
        raise EmptyInputError("input holds no symbols before the terminator / end of file")
    _report(progress, "Completed Generating Frequency Table")

    _report(progress, "Generating Code Mapping Table")
    code_table = build_code_table(frequency_table)
    expected_bits = encoded_bit_length(frequency_table, code_table)
    _report(progress, "Completed Code Mapping Table")

    _report(progress, "Encoding File")
    header_bytes = 0
    with open_output() as sink:
        if framed:
            header_bytes = write_header(sink, frequency_table, expected_bits)
        with open_input() as stream:
            result = encode_stream(stream, code_table, sink, config)
    if result.total_bits != expected_bits:
        raise IOFailureError(
            f"input changed between passes: counted {expected_bits} code bits, encoded {result.total_bits}"
        )
    _report(progress, "Completed Encoding File")

    return CompressionStats(
        input_symbols=sum(frequency_table.values()),
        distinct_symbols=len(frequency_table),
        total_bits=result.total_bits,
        pad_bits=result.pad_bits,
        header_bytes=header_bytes,
        payload_bytes=result.bytes_written,
    )


def compress_bytes(data: bytes, config: CompressionConfig = None, framed: bool = False) -> bytes:
    sink = BytesIO()
    compress_stream(lambda: BytesIO(data), lambda: nullcontext(sink), config, framed=framed)
    return sink.getvalue()


def decompress_bytes(blob: bytes) -> bytes: # framed input only
    return decode_framed(blob)


def compress_file(input_path, output_path, config: CompressionConfig = None, framed: bool = False,
                  progress: Optional[Callable[[str], None]] = None) -> CompressionStats:
    """
    Compress input_path into output_path
    OSErrors surface as IOFailureError; a partially written output is removed
    """
    input_path, output_path = Path(input_path), Path(output_path)
    output = _OutputFile(output_path)
    try:
        return compress_stream(lambda: input_path.open("rb"), output.open, config, framed=framed, progress=progress)
    except BaseException as exc: # KeyboardInterrupt too
        output.discard()
        if isinstance(exc, OSError) and not isinstance(exc, CompressionError):
            raise IOFailureError(f"{exc.filename or input_path}: {exc.strerror or exc}") from exc
        raise


def decompress_file(input_path, output_path) -> int:
    """
    Restore a framed file into output_path
    Same failure contract as compress_file
    """
    input_path, output_path = Path(input_path), Path(output_path)
    output = _OutputFile(output_path)
    try:
        restored = decode_framed(input_path.read_bytes())
        with output.open() as sink:
            sink.write(restored)
    except BaseException as exc:
        output.discard()
        if isinstance(exc, OSError) and not isinstance(exc, CompressionError):
            raise IOFailureError(f"{exc.filename or input_path}: {exc.strerror or exc}") from exc
        raise
    return len(restored)


class _OutputFile: # remembers whether we created the output so only our own file is removed
    def __init__(self, path: Path):
        self.path = path
        self.created = False

    def open(self):
        handle = self.path.open("wb")
        self.created = True
        return handle

    def discard(self) -> None:
        if self.created:
            self.path.unlink(missing_ok=True)


# Main

def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Compress a file with Huffman coding.")
    ap.add_argument("input", help="File to read")
    ap.add_argument("output", help="File to write")
    ap.add_argument("-d", "--decompress", action="store_true", help="Restore a file written with --framed")
    ap.add_argument("--framed", action="store_true", help="Prefix the output with the symbol counts so it can be decompressed")
    ap.add_argument("--binary", action="store_true", help="Read every byte up to end of file instead of stopping at the first 0 byte")
    ap.add_argument("--chunk_size", type=int, default=None, help=f"Bytes per read (default {DEFAULT_CHUNK_SIZE})")
    ap.add_argument("--quiet", action="store_true", help="Only report errors")
    args = ap.parse_args(argv)

    if args.decompress:
        compress_only = [flag for flag, given in (("--framed", args.framed), ("--binary", args.binary),
                                                  ("--chunk_size", args.chunk_size is not None)) if given]
        if compress_only:
            ap.error(f"{', '.join(compress_only)} cannot be combined with --decompress")

    try:
        config = CompressionConfig(
            chunk_size=DEFAULT_CHUNK_SIZE if args.chunk_size is None else args.chunk_size,
            terminator=None if args.binary else DEFAULT_TERMINATOR,
        )
    except ValueError as exc:
        ap.error(str(exc))

    progress = None if args.quiet else print

    try:
        if args.decompress:
            restored = decompress_file(args.input, args.output)
            _report(progress, f"Restored {restored} bytes to {args.output}")
            return 0
        stats = compress_file(args.input, args.output, config, framed=args.framed, progress=progress)
    except CompressionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _report(progress, f"Symbols read: {stats.input_symbols} ({stats.distinct_symbols} distinct)")
    _report(progress, f"Wrote {stats.output_bytes} bytes ({stats.total_bits} code bits, {stats.pad_bits} pad bits)")
    _report(progress, f"Compression ratio: {stats.compression_ratio:.3f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
