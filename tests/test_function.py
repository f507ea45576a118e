"""Tests for the primitive stream readers and writers."""

import io

import pytest

from sceneloader.exceptions import (
    InvalidAsciiError,
    InvalidUtf8Error,
    MissingTokenError,
    UnexpectedEofError,
)
from sceneloader.function.decode import READ_CHUNK_SIZE
from sceneloader.function import (
    advance,
    is_null,
    is_space,
    read_byte_after,
    read_bytes,
    read_bytes_before,
    read_bytes_before_many,
    read_bytes_before_newline,
    read_bytes_until_many,
    read_newline,
    string_from_bytes_ascii,
    string_from_bytes_utf8,
    write_bytes,
    write_string_ascii,
)


class TrickleReader(io.RawIOBase):
    """A raw stream returning at most one byte per read."""

    def __init__(self, data: bytes):
        self._data = io.BytesIO(data)

    def readable(self):
        return True

    def readinto(self, buffer):
        chunk = self._data.read(min(1, len(buffer)))
        buffer[:len(chunk)] = chunk
        return len(chunk)


class TrickleWriter(io.RawIOBase):
    """A raw stream accepting at most two bytes per write."""

    def __init__(self):
        self.data = bytearray()

    def writable(self):
        return True

    def write(self, data):
        chunk = bytes(data[:2])
        self.data += chunk
        return len(chunk)


class TestReadBytes:
    """Test exact-size reads."""

    def test_exact(self):
        """Test reading exactly the requested bytes."""
        reader = io.BytesIO(b"abcdef")
        assert read_bytes(reader, 4) == b"abcd"
        assert reader.read() == b"ef"

    def test_short_reads_are_joined(self):
        """Test that short reads of raw streams are retried."""
        assert read_bytes(TrickleReader(b"abcdef"), 5) == b"abcde"

    def test_eof(self):
        """Test that a truncated stream fails with UnexpectedEofError."""
        with pytest.raises(UnexpectedEofError) as info:
            read_bytes(io.BytesIO(b"abc"), 8)
        assert info.value.expected == 8
        assert info.value.actual == 3
        assert isinstance(info.value, EOFError)

    def test_zero(self):
        """Test that reading zero bytes never fails."""
        assert read_bytes(io.BytesIO(b""), 0) == b""

    @pytest.mark.parametrize("n", [1 << 40, (1 << 64) - 1, 1 << 70])
    def test_huge_length(self, n):
        """Test that a huge length fails at end of stream without a huge read."""
        sizes = []

        class SizedReader(io.BytesIO):
            def read(self, size=-1):
                sizes.append(size)
                return super().read(size)

        with pytest.raises(UnexpectedEofError) as info:
            read_bytes(SizedReader(b"\x00" * 16), n)
        assert info.value.expected == n
        assert info.value.actual == 16
        assert max(sizes) <= READ_CHUNK_SIZE

    def test_larger_than_chunk(self):
        data = bytes(range(256)) * (READ_CHUNK_SIZE // 256 + 3)
        assert read_bytes(io.BytesIO(data), len(data)) == data

    def test_advance(self):
        """Test discarding bytes."""
        reader = io.BytesIO(bytes(range(200)))
        advance(reader, 150)
        assert reader.read(1) == bytes([150])

    def test_advance_eof(self):
        """Test that advancing past the end fails."""
        with pytest.raises(UnexpectedEofError):
            advance(io.BytesIO(b"12"), 3)


class TestDelimitedReads:
    """Test predicate and delimiter driven reads."""

    def test_read_byte_after(self):
        """Test skipping leading delimiter bytes."""
        reader = io.BytesIO(b"   x y")
        assert read_byte_after(reader, is_space) == ord("x")
        assert reader.read() == b" y"

    def test_read_byte_after_eof(self):
        """Test that only delimiter bytes until the end is a missing token."""
        with pytest.raises(MissingTokenError):
            read_byte_after(io.BytesIO(b"    "), is_space)

    def test_read_bytes_before(self):
        """Test reading before a delimiter, which is consumed."""
        reader = io.BytesIO(b"float x\n")
        assert read_bytes_before(reader, is_space) == b"float"
        assert reader.read() == b"x\n"

    def test_read_bytes_before_null(self):
        """Test reading a NUL-terminated name."""
        reader = io.BytesIO(b"image.png\x00rest")
        assert read_bytes_before(reader, is_null) == b"image.png"
        assert reader.read() == b"rest"

    def test_read_bytes_before_bound(self):
        """Test that exceeding max_extra fails with MissingTokenError."""
        with pytest.raises(MissingTokenError):
            read_bytes_before(io.BytesIO(b"abcdef "), is_space, max_extra=3)

    def test_read_bytes_before_bound_inclusive(self):
        """Test that exactly max_extra bytes are accepted."""
        assert read_bytes_before(io.BytesIO(b"abc "), is_space, max_extra=3) == b"abc"

    def test_read_bytes_before_eof(self):
        """Test that a missing delimiter at the end fails."""
        with pytest.raises(UnexpectedEofError):
            read_bytes_before(io.BytesIO(b"abc"), is_space)

    def test_read_bytes_before_newline_strips_cr(self):
        """Test that a trailing CR is dropped."""
        reader = io.BytesIO(b"end_header\r\nbody")
        assert read_bytes_before_newline(reader) == b"end_header"
        assert reader.read() == b"body"

    def test_read_bytes_before_many(self):
        """Test reading before a multi-byte delimiter."""
        reader = io.BytesIO(b"a\nb\nend_header\npayload")
        assert read_bytes_before_many(reader, b"end_header\n") == b"a\nb\n"
        assert reader.read() == b"payload"

    def test_read_bytes_until_many(self):
        """Test skipping through a multi-byte delimiter."""
        reader = io.BytesIO(b"xxend_header\npayload")
        read_bytes_until_many(reader, b"end_header\n")
        assert reader.read() == b"payload"

    def test_read_bytes_until_many_missing(self):
        """Test that a missing multi-byte delimiter fails."""
        with pytest.raises(MissingTokenError):
            read_bytes_until_many(io.BytesIO(b"end_head"), b"end_header\n")


class TestReadNewline:
    """Test newline reads."""

    @pytest.mark.parametrize("data", [b"\n", b"\r\n"])
    def test_newline(self, data):
        """Test LF and CR LF."""
        assert read_newline(io.BytesIO(data + b"x")) == data

    @pytest.mark.parametrize("data", [b"x", b"\r", b"\rx", b""])
    def test_not_newline(self, data):
        """Test that anything else is a missing token."""
        with pytest.raises(MissingTokenError):
            read_newline(io.BytesIO(data))


class TestStrings:
    """Test text validation."""

    def test_ascii(self):
        assert string_from_bytes_ascii(b"vertex") == "vertex"

    def test_invalid_ascii_carries_lossy_text(self):
        """Test that InvalidAsciiError carries the lossily decoded text."""
        with pytest.raises(InvalidAsciiError) as info:
            string_from_bytes_ascii("café".encode("utf-8"))
        assert info.value.text == "café"

    def test_utf8(self):
        assert string_from_bytes_utf8("café.png".encode("utf-8")) == "café.png"

    def test_invalid_utf8(self):
        """Test that malformed UTF-8 fails with the replacement character in its text."""
        with pytest.raises(InvalidUtf8Error) as info:
            string_from_bytes_utf8(b"ab\xffcd")
        assert info.value.text == "ab\ufffdcd"


class TestWriters:
    """Test primitive writers."""

    def test_write_bytes_partial(self):
        """Test that partial writes are continued."""
        writer = TrickleWriter()
        write_bytes(writer, b"abcdefg")
        assert bytes(writer.data) == b"abcdefg"

    def test_write_string_ascii(self):
        writer = io.BytesIO()
        write_string_ascii(writer, "ply\n")
        assert writer.getvalue() == b"ply\n"

    def test_write_string_non_ascii(self):
        with pytest.raises(InvalidAsciiError):
            write_string_ascii(io.BytesIO(), "é")
