"""
Primitive readers over sequential byte streams.

The readers only need a ``read(n)`` method on the stream and never look
ahead further than the bytes they are asked for, so they work the same on
files, in-memory buffers and socket files. A reader that ends in the middle
of a request raises `UnexpectedEofError`; errors raised by the stream itself
are left untouched.
"""
from typing import BinaryIO, Callable, Optional

from ..exceptions import (
    InvalidAsciiError,
    InvalidUtf8Error,
    MissingTokenError,
    UnexpectedEofError,
)

NEWLINE = b"\n"
NULL = b"\x00"
SPACE = b" "

# Discarded bytes are read in chunks of this size.
ADVANCE_CHUNK_SIZE = 1 << 16
READ_CHUNK_SIZE = 1 << 20


def is_null(byte: int) -> bool:
    return byte == NULL[0]


def is_space(byte: int) -> bool:
    return byte == SPACE[0]


def read_bytes(reader: BinaryIO, n: int) -> bytes:
    """
    Read exactly `n` bytes.

    Parameters
    ----------
    reader: BinaryIO
        The byte stream.
    n: int
        The number of bytes to read.

    Returns
    -------
    data: bytes
        The bytes read, always of length `n`.

    Notes
    -----
    Reads are bounded by `READ_CHUNK_SIZE`, so a length taken from an
    untrusted count fails with `UnexpectedEofError` once the stream runs out
    instead of allocating `n` bytes up front.
    """
    chunks = []
    size = 0
    while size < n:
        chunk = reader.read(min(n - size, READ_CHUNK_SIZE))
        if not chunk:
            raise UnexpectedEofError(n, size)
        chunks.append(chunk)
        size += len(chunk)
    return b"".join(chunks)


def advance(reader: BinaryIO, n: int) -> None:
    """
    Discard `n` bytes.
    """
    while n > 0:
        step = min(n, ADVANCE_CHUNK_SIZE)
        read_bytes(reader, step)
        n -= step


def _read_byte(reader: BinaryIO) -> Optional[int]:
    byte = reader.read(1)
    if not byte:
        return None
    return byte[0]


def read_byte_after(
    reader: BinaryIO,
    delimiter: Callable[[int], bool],
    token: str = "<token>",
) -> int:
    """
    Skip all bytes matching `delimiter` and return the first one that does not.

    Parameters
    ----------
    reader: BinaryIO
        The byte stream.
    delimiter: Callable[[int], bool]
        Predicate on a single byte value.
    token: str
        Description of the expected token, used in the error message.

    Raises
    ------
    MissingTokenError
        If the stream ends before a non-matching byte appears.
    """
    while True:
        byte = _read_byte(reader)
        if byte is None:
            raise MissingTokenError(token)
        if not delimiter(byte):
            return byte


def read_bytes_before(
    reader: BinaryIO,
    delimiter: Callable[[int], bool],
    max_extra: Optional[int] = None,
    token: str = "<delimiter>",
) -> bytes:
    """
    Read all bytes before the first byte matching `delimiter`.

    The delimiter itself is consumed and dropped, so the stream is left just
    past it.

    Parameters
    ----------
    reader: BinaryIO
        The byte stream.
    delimiter: Callable[[int], bool]
        Predicate on a single byte value.
    max_extra: int | None
        The maximum number of bytes allowed before the delimiter.
        None for no bound.
    token: str
        Description of the expected delimiter, used in the error message.

    Raises
    ------
    UnexpectedEofError
        If the stream ends before the delimiter.
    MissingTokenError
        If more than `max_extra` bytes precede the delimiter.
    """
    data = bytearray()
    while True:
        byte = _read_byte(reader)
        if byte is None:
            raise UnexpectedEofError(len(data) + 1, len(data))
        if delimiter(byte):
            return bytes(data)
        if max_extra is not None and len(data) >= max_extra:
            raise MissingTokenError(token, f"No delimiter within {max_extra} bytes")
        data.append(byte)


def read_bytes_before_newline(reader: BinaryIO, max_extra: Optional[int] = None) -> bytes:
    """
    Read all bytes before the next LF, dropping a trailing CR.
    """
    data = read_bytes_before(reader, lambda byte: byte == NEWLINE[0], max_extra, "<newline>")
    if data.endswith(b"\r"):
        return data[:-1]
    return data


def read_bytes_before_many(
    reader: BinaryIO,
    delimiters: bytes,
    max_extra: Optional[int] = None,
) -> bytes:
    """
    Read all bytes before the multi-byte `delimiters` sequence, which is consumed.
    """
    assert delimiters, "delimiters must not be empty"

    size = len(delimiters)
    data = bytearray()
    while True:
        byte = _read_byte(reader)
        if byte is None:
            raise UnexpectedEofError(len(data) + 1, len(data))
        data.append(byte)
        if data.endswith(delimiters):
            return bytes(data[:-size])
        if max_extra is not None and len(data) > max_extra + size:
            raise MissingTokenError(delimiters.decode("latin-1"), f"No delimiter within {max_extra} bytes")


def read_bytes_until_many(reader: BinaryIO, delimiters: bytes) -> None:
    """
    Skip bytes up to and including the multi-byte `delimiters` sequence.
    """
    assert delimiters, "delimiters must not be empty"

    size = len(delimiters)
    window = bytearray()
    while True:
        byte = _read_byte(reader)
        if byte is None:
            raise MissingTokenError(delimiters.decode("latin-1"))
        window.append(byte)
        if len(window) > size:
            del window[0]
        if window == delimiters:
            return


def read_newline(reader: BinaryIO) -> bytes:
    """
    Read exactly one newline, either LF or CR LF.

    Returns
    -------
    newline: bytes
        The newline bytes as found in the stream.
    """
    byte = _read_byte(reader)
    if byte == NEWLINE[0]:
        return b"\n"
    if byte == b"\r"[0] and _read_byte(reader) == NEWLINE[0]:
        return b"\r\n"
    raise MissingTokenError("<newline> (CRLF or LF)")


def string_from_bytes_ascii(data: bytes) -> str:
    try:
        return data.decode("ascii")
    except UnicodeDecodeError:
        raise InvalidAsciiError(data.decode("utf-8", errors="replace")) from None


def string_from_bytes_utf8(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidUtf8Error(data.decode("utf-8", errors="replace")) from None
