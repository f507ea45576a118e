"""
Reading and writing of PLY polygon files (``*.ply``).

The header is parsed into `Header` (format, version, elements, properties
and comment lines); the binary payload is decoded into `Payload`, one buffer
per property; `Object` binds the two and offers name-based access. Decoding
followed by encoding reproduces the original bytes exactly.
"""
from .kind import (
    BUILTIN_SCALAR_KINDS,
    DEFAULT_SCALAR_KINDS,
    LIST_KIND_NAME,
    ListPropertyKind,
    PropertyKind,
    ScalarKindRegistry,
    ScalarPropertyKind,
    kind_name_from_dtype,
    register,
    search,
    unregister,
)
from .header import (
    Comment,
    Element,
    Elements,
    Format,
    Header,
    Properties,
    Property,
    parse_kind,
)
from .payload import Payload, swap_chunks
from .object import ElementEntry, Object, PropertyEntry
