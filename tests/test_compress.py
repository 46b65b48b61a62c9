from contextlib import nullcontext
from io import BytesIO
from pathlib import Path

import pytest

import compress
from bitpack import encode_bytes
from compress import compress_bytes, compress_file, compress_stream, decompress_file, main
from config import BINARY_SAFE, CompressionConfig
from errors import CorruptStreamError, EmptyInputError, IOFailureError, UnknownSymbolError
from huffman import build_code_table, frequency_table_from_bytes

TEXT = b"It was the best of times, it was the worst of times.\n" * 20


def test_compress_bytes_matches_pipeline_pieces():
    codes = build_code_table(frequency_table_from_bytes(TEXT))
    assert compress_bytes(TEXT) == encode_bytes(TEXT, codes)


def test_compression_is_deterministic():
    assert compress_bytes(TEXT) == compress_bytes(TEXT)
    assert compress_bytes(TEXT, framed=True) == compress_bytes(TEXT, framed=True)


def test_text_shrinks():
    assert len(compress_bytes(TEXT)) < len(TEXT)


def test_single_symbol_input():
    assert compress_bytes(b"aaaa\x00") == b"\x00"


def test_two_symbol_input():
    assert compress_bytes(b"aaaab") == bytes([0b11110000])


@pytest.mark.parametrize("data", [b"", b"\x00", b"\x00abc"])
def test_empty_input_rejected(data):
    with pytest.raises(EmptyInputError):
        compress_bytes(data)


def test_empty_input_never_opens_output():
    opened = []

    def open_output():
        opened.append(True)
        return nullcontext(BytesIO())

    with pytest.raises(EmptyInputError):
        compress_stream(lambda: BytesIO(b""), open_output)
    assert opened == []


def test_input_changed_between_passes():
    reads = iter([b"aaa", b"aab"])
    with pytest.raises(UnknownSymbolError):
        compress_stream(lambda: BytesIO(next(reads)), lambda: nullcontext(BytesIO()))


def test_stats_and_progress_messages():
    messages = []
    sink = BytesIO()
    stats = compress_stream(lambda: BytesIO(b"aaaab"), lambda: nullcontext(sink), progress=messages.append)
    assert messages == [
        "Generating Frequency Table",
        "Completed Generating Frequency Table",
        "Generating Code Mapping Table",
        "Completed Code Mapping Table",
        "Encoding File",
        "Completed Encoding File",
    ]
    assert stats.input_symbols == 5
    assert stats.distinct_symbols == 2
    assert stats.total_bits == 5
    assert stats.pad_bits == 3
    assert stats.output_bytes == 1 == len(sink.getvalue())
    assert stats.compression_ratio == pytest.approx(0.2)


def test_compress_file_round_trip(tmp_path):
    data = bytes(range(256)) * 4 + b"\x00" * 100
    src, packed, restored = tmp_path / "in.bin", tmp_path / "out.huf", tmp_path / "back.bin"
    src.write_bytes(data)

    stats = compress_file(src, packed, BINARY_SAFE, framed=True)
    assert stats.output_bytes == packed.stat().st_size
    assert decompress_file(packed, restored) == len(data)
    assert restored.read_bytes() == data


def test_compress_file_raw(tmp_path):
    src, dst = tmp_path / "in.txt", tmp_path / "out.huf"
    src.write_bytes(TEXT)
    compress_file(src, dst, CompressionConfig(chunk_size=7))
    assert dst.read_bytes() == compress_bytes(TEXT)


def test_empty_file_writes_nothing(tmp_path):
    src, dst = tmp_path / "empty.txt", tmp_path / "out.huf"
    src.write_bytes(b"")
    with pytest.raises(EmptyInputError):
        compress_file(src, dst)
    assert not dst.exists()


def test_missing_input_is_io_failure(tmp_path):
    with pytest.raises(IOFailureError):
        compress_file(tmp_path / "nope.txt", tmp_path / "out.huf")
    assert not (tmp_path / "out.huf").exists()


def test_unwritable_output_is_io_failure(tmp_path):
    src = tmp_path / "in.txt"
    src.write_bytes(b"abc")
    with pytest.raises(IOFailureError):
        compress_file(src, tmp_path / "no_such_dir" / "out.huf")


def test_failed_encoding_removes_partial_output(tmp_path, monkeypatch):
    src, dst = tmp_path / "in.txt", tmp_path / "out.huf"
    src.write_bytes(b"abc")

    def failing_encode(stream, code_table, sink, config=None):
        sink.write(b"\x01")
        raise UnknownSymbolError(ord('z'))

    monkeypatch.setattr(compress, "encode_stream", failing_encode)
    with pytest.raises(UnknownSymbolError):
        compress_file(src, dst)
    assert not dst.exists()


def test_decompress_missing_file(tmp_path):
    with pytest.raises(IOFailureError):
        decompress_file(tmp_path / "nope.huf", tmp_path / "out.bin")


# Command line

def test_cli_compress_and_decompress(tmp_path, capsys):
    src, packed, restored = tmp_path / "in.txt", tmp_path / "out.huf", tmp_path / "back.txt"
    src.write_bytes(TEXT)

    assert main([str(src), str(packed), "--framed"]) == 0
    out = capsys.readouterr().out
    assert "Completed Encoding File" in out
    assert "Compression ratio" in out

    assert main(["--decompress", str(packed), str(restored), "--quiet"]) == 0
    assert restored.read_bytes() == TEXT


def test_cli_quiet(tmp_path, capsys):
    src, dst = tmp_path / "in.txt", tmp_path / "out.huf"
    src.write_bytes(b"aaaab")
    assert main([str(src), str(dst), "--quiet", "--chunk_size", "2"]) == 0
    assert capsys.readouterr().out == ""
    assert dst.read_bytes() == bytes([0b11110000])


def test_cli_binary_flag(tmp_path):
    src, dst = tmp_path / "in.bin", tmp_path / "out.huf"
    src.write_bytes(b"a\x00a\x00")
    assert main([str(src), str(dst), "--binary", "--framed", "--quiet"]) == 0
    assert compress.decompress_bytes(dst.read_bytes()) == b"a\x00a\x00"


def test_cli_empty_input_fails(tmp_path, capsys):
    src, dst = tmp_path / "in.txt", tmp_path / "out.huf"
    src.write_bytes(b"\x00")
    assert main([str(src), str(dst)]) == 1
    assert "error:" in capsys.readouterr().err
    assert not dst.exists()


def test_cli_missing_arguments():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2


def test_cli_bad_chunk_size(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "a"), str(tmp_path / "b"), "--chunk_size", "0"])
    assert excinfo.value.code == 2


def test_interrupted_encoding_removes_partial_output(tmp_path, monkeypatch):
    src, dst = tmp_path / "in.txt", tmp_path / "out.huf"
    src.write_bytes(b"abc")

    def interrupted_encode(stream, code_table, sink, config=None):
        sink.write(b"\x01")
        raise KeyboardInterrupt

    monkeypatch.setattr(compress, "encode_stream", interrupted_encode)
    with pytest.raises(KeyboardInterrupt):
        compress_file(src, dst)
    assert not dst.exists()


class FailingWriter:
    """Binary file handle that writes a few bytes and then runs out of space"""

    def __init__(self, handle):
        self.handle = handle

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.handle.close()
        return False

    def write(self, data):
        self.handle.write(data[:4])
        raise OSError(28, "No space left on device")


def test_failed_decompress_write_removes_partial_output(tmp_path, monkeypatch):
    packed, restored = tmp_path / "in.huf", tmp_path / "out.bin"
    packed.write_bytes(compress_bytes(TEXT, framed=True))

    real_open = Path.open

    def open_with_full_disk(self, mode="r", *args, **kwargs):
        handle = real_open(self, mode, *args, **kwargs)
        return FailingWriter(handle) if "w" in mode else handle

    monkeypatch.setattr(Path, "open", open_with_full_disk)
    with pytest.raises(IOFailureError):
        decompress_file(packed, restored)
    assert not restored.exists()


def test_corrupt_decompress_input_writes_nothing(tmp_path):
    packed, restored = tmp_path / "in.huf", tmp_path / "out.bin"
    packed.write_bytes(b"not a framed file")
    with pytest.raises(CorruptStreamError):
        decompress_file(packed, restored)
    assert not restored.exists()


@pytest.mark.parametrize("extra", [["--framed"], ["--binary"], ["--chunk_size", "64"]])
def test_cli_rejects_compress_options_with_decompress(tmp_path, extra):
    with pytest.raises(SystemExit) as excinfo:
        main(["--decompress", str(tmp_path / "a.huf"), str(tmp_path / "b"), *extra])
    assert excinfo.value.code == 2
