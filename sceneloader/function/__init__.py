from .decode import (
    NEWLINE,
    NULL,
    SPACE,
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
)
from .encode import write_bytes, write_string_ascii
