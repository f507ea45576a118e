from typing import BinaryIO

from ..exceptions import InvalidAsciiError


def write_bytes(writer: BinaryIO, data: bytes) -> None:
    """
    Write all of `data`, looping over partial writes of raw streams.
    """
    view = memoryview(data)
    while view:
        written = writer.write(view)
        if written is None or written >= len(view):
            return
        if written == 0:
            raise OSError("stream accepted no bytes")
        view = view[written:]


def write_string_ascii(writer: BinaryIO, text: str) -> None:
    if not text.isascii():
        raise InvalidAsciiError(text)
    write_bytes(writer, text.encode("ascii"))
