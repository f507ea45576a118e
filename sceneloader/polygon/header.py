"""
Polygon header model and codec.

The header is plain ASCII text::

    ply
    format binary_little_endian 1.0
    comment made by hand
    element vertex 3
    property float x
    property list uchar int vertex_indices
    end_header

Decoding reads fixed-size keyword prefixes and branches on them, so the
stream is consumed in a single pass without backtracking. Encoding writes the
exact textual inverse, keeping comment and obj_info lines at their original
position among the element and property lines.
"""
import sys
import logging
from enum import Enum
from io import BytesIO
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List, Optional, Union

from ..exceptions import (
    DuplicateNameError,
    InvalidAsciiError,
    InvalidCountError,
    InvalidFormatVariantError,
    MissingTokenError,
)
from ..function.decode import (
    is_space,
    read_byte_after,
    read_bytes,
    read_bytes_before,
    read_bytes_before_newline,
    read_newline,
    string_from_bytes_ascii,
)
from ..function.encode import write_bytes
from .kind import (
    DEFAULT_SCALAR_KINDS,
    LIST_KIND_NAME,
    ListPropertyKind,
    PropertyKind,
    ScalarKindRegistry,
    ScalarPropertyKind,
)

logger = logging.getLogger(__name__)

SIGNATURE = b"ply"
MAX_TOKEN_SIZE = 1 << 10
MAX_LINE_SIZE = 1 << 16
MAX_COUNT = (1 << 64) - 1


class Format(str, Enum):
    """Payload format variants."""

    ASCII = "ascii"
    BINARY_LITTLE_ENDIAN = "binary_little_endian"
    BINARY_BIG_ENDIAN = "binary_big_endian"

    def __str__(self) -> str:
        return self.value

    @property
    def is_ascii(self) -> bool:
        return self is Format.ASCII

    @property
    def byteorder(self) -> str:
        """The byte order of a binary format, "little" or "big"."""
        if self is Format.BINARY_BIG_ENDIAN:
            return "big"
        if self is Format.BINARY_LITTLE_ENDIAN:
            return "little"
        raise NotImplementedError("Unimplemented: ASCII format has no byte order")

    def is_binary_native_endian(self) -> bool:
        return self is Format.binary_native_endian()

    @classmethod
    def binary_native_endian(cls) -> "Format":
        if sys.byteorder == "big":
            return cls.BINARY_BIG_ENDIAN
        return cls.BINARY_LITTLE_ENDIAN


@dataclass
class Property:
    """
    A named field of an element record.

    Parameters
    ----------
    name: str
        The property name.
    kind: PropertyKind
        Either a `ScalarPropertyKind` or a `ListPropertyKind`.
    """
    name: str
    kind: PropertyKind

    def __str__(self) -> str:
        return f"property {self.kind} {self.name}"

    @property
    def is_list(self) -> bool:
        return isinstance(self.kind, ListPropertyKind)

    @property
    def is_scalar(self) -> bool:
        return isinstance(self.kind, ScalarPropertyKind)


class NamedSequence:
    """
    An order-preserving sequence of named items with a name to index map.

    Items are looked up by name (``seq["x"]``) or by position (``seq[0]``).
    Names are unique; adding a duplicate raises `DuplicateNameError`.
    """

    def __init__(self, items=(), scope: Optional[str] = None) -> None:
        self._items: List = []
        self._index: Dict[str, int] = {}
        self.scope = scope
        for item in items:
            self.add(item)

    def add(self, item):
        if item.name in self._index:
            raise DuplicateNameError(item.name, self.scope)
        self._index[item.name] = len(self._items)
        self._items.append(item)
        return item

    def get(self, name: str, default=None):
        index = self._index.get(name)
        if index is None:
            return default
        return self._items[index]

    def index(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def names(self) -> List[str]:
        return [item.name for item in self._items]

    def __getitem__(self, key: Union[int, str]):
        if isinstance(key, str):
            return self._items[self._index[key]]
        return self._items[key]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NamedSequence):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._items!r})"


class Properties(NamedSequence):
    def is_same_order(self, other: "Properties") -> bool:
        """
        Check if the two properties have the same names and kinds in the same order.
        """
        return len(self) == len(other) and all(a == b for a, b in zip(self, other))


@dataclass(eq=False)
class Element:
    """
    A named record type with a fixed record count.

    Parameters
    ----------
    name: str
        The element name, e.g. "vertex".
    count: int
        The number of records.
    properties: Properties
        The record fields in declaration order.
    """
    name: str
    count: int = 0
    properties: Properties = None

    def __post_init__(self):
        if self.properties is None:
            self.properties = Properties(scope=self.name)
        elif not isinstance(self.properties, Properties):
            self.properties = Properties(self.properties, scope=self.name)
        else:
            self.properties.scope = self.name

    def add_property(
        self,
        name: str,
        kind: Union[PropertyKind, str],
        kinds: Optional[ScalarKindRegistry] = None,
    ) -> Property:
        """
        Append a property.

        Parameters
        ----------
        name: str
            The property name.
        kind: PropertyKind | str
            The property kind, or its header spelling such as "float" or
            "list uchar int".
        kinds: ScalarKindRegistry | None
            The registry used to resolve a spelled kind.

        Examples
        --------
        >>> element = Element("face", 1)
        >>> element.add_property("vertex_indices", "list uchar int")
        """
        if isinstance(kind, str):
            kind = parse_kind(kind, kinds)
        return self.properties.add(Property(name, kind))

    def record_size(self) -> Optional[int]:
        """
        The byte size of one record, or None if the element has a list property.
        """
        size = 0
        for prop in self.properties:
            if not isinstance(prop.kind, ScalarPropertyKind):
                return None
            size += prop.kind.size
        return size

    def is_same_order(self, other: "Element") -> bool:
        return self.name == other.name and self.properties.is_same_order(other.properties)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Element):
            return NotImplemented
        return (
            self.name == other.name
            and self.count == other.count
            and self.properties == other.properties
        )

    def __str__(self) -> str:
        lines = [f"element {self.name} {self.count}"]
        lines += [str(prop) for prop in self.properties]
        return "".join(f"{line}\n" for line in lines)


class Elements(NamedSequence):
    def is_same_order(self, other: "Elements") -> bool:
        """
        Check if the two elements have the same structure.

        Record counts are ignored, so it can be used for checking the
        compatibility of two polygon objects.
        """
        return len(self) == len(other) and all(a.is_same_order(b) for a, b in zip(self, other))


@dataclass
class Comment:
    """
    A ``comment`` or ``obj_info`` line kept verbatim.

    Parameters
    ----------
    text: str
        Everything after the keyword and its separating space.
    position: int
        The number of element and property lines written before this line.
    keyword: str
        Either "comment" or "obj_info".
    """
    text: str
    position: int = 0
    keyword: str = "comment"

    def __str__(self) -> str:
        return f"{self.keyword} {self.text}"


@dataclass
class Header:
    """
    Polygon header.

    Parameters
    ----------
    format: Format
        The payload format.
    version: str
        The format version token.
    elements: Elements
        The elements in declaration order.
    comments: List[Comment]
        The comment and obj_info lines with their positions.

    Examples
    --------
    >>> header = Header.from_string(
    ...     "ply\\nformat ascii 1.0\\nelement vertex 1\\nproperty float x\\nend_header\\n"
    ... )
    >>> header.elements["vertex"].count
    1
    """
    format: Format = Format.BINARY_LITTLE_ENDIAN
    version: str = "1.0"
    elements: Elements = field(default_factory=Elements)
    comments: List[Comment] = field(default_factory=list)

    def __post_init__(self):
        self.format = Format(self.format)
        if not isinstance(self.elements, Elements):
            self.elements = Elements(self.elements)

    @property
    def meta_line_count(self) -> int:
        """The number of element and property lines."""
        return sum(1 + len(element.properties) for element in self.elements)

    def add_element(self, name: str, count: int = 0) -> Element:
        return self.elements.add(Element(name, count))

    def add_comment(self, text: str) -> Comment:
        """
        Append a comment line after the current last element or property line.
        """
        comment = Comment(text, self.meta_line_count, "comment")
        self.comments.append(comment)
        return comment

    def add_obj_info(self, text: str) -> Comment:
        comment = Comment(text, self.meta_line_count, "obj_info")
        self.comments.append(comment)
        return comment

    def get_element(self, name: str) -> Optional[Element]:
        return self.elements.get(name)

    def iter_meta_lines(self) -> Iterator[str]:
        """
        Yield the lines between the format line and ``end_header``, in order.
        """
        comments = sorted(self.comments, key=lambda comment: comment.position)
        cursor = 0
        position = 0
        for element in self.elements:
            lines = [f"element {element.name} {element.count}"]
            lines += [str(prop) for prop in element.properties]
            for line in lines:
                while cursor < len(comments) and comments[cursor].position <= position:
                    yield str(comments[cursor])
                    cursor += 1
                yield line
                position += 1
        for comment in comments[cursor:]:
            yield str(comment)

    def __str__(self) -> str:
        lines = ["ply", f"format {self.format} {self.version}"]
        lines += list(self.iter_meta_lines())
        lines.append("end_header")
        return "".join(f"{line}\n" for line in lines)

    def encode(self, writer: BinaryIO) -> None:
        """
        Write the header text, ``end_header\\n`` included.

        Nothing is written unless every line decodes back to the same header.

        Raises
        ------
        ValueError
            If a token is empty or holds a space, or if any line holds a line
            break.
        InvalidAsciiError
            If any part of the header is not ASCII.
        """
        self.check()
        text = str(self)
        if not text.isascii():
            raise InvalidAsciiError(text)
        write_bytes(writer, text.encode("ascii"))
        logger.debug("Header::encode (%d elements, %d comments)", len(self.elements), len(self.comments))

    def check(self) -> None:
        """
        Check that the header text can be decoded back unchanged.

        Element names and kind names are space-separated tokens. The version,
        property names and comment text run to the end of their line.

        Raises
        ------
        ValueError
            If a token is empty or holds a space, or if any line holds a line
            break.
        """
        _check_line(self.version, "version")
        for comment in self.comments:
            _check_line(comment.text, comment.keyword, allow_empty=True)
        for element in self.elements:
            _check_token(element.name, "element name")
            for prop in element.properties:
                _check_line(prop.name, f"property name of element {element.name!r}")
                kinds = [prop.kind.count, prop.kind.value] if prop.is_list else [prop.kind]
                for kind in kinds:
                    _check_token(kind.name, f"kind of property {element.name}.{prop.name}")

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.encode(buffer)
        return buffer.getvalue()

    @classmethod
    def from_string(cls, text: Union[str, bytes], kinds: Optional[ScalarKindRegistry] = None) -> "Header":
        if isinstance(text, str):
            text = text.encode("utf-8")
        return cls.decode(BytesIO(text), kinds)

    @classmethod
    def decode(cls, reader: BinaryIO, kinds: Optional[ScalarKindRegistry] = None) -> "Header":
        """
        Decode a header, leaving the stream at the first payload byte.

        Parameters
        ----------
        reader: BinaryIO
            The byte stream positioned at the signature.
        kinds: ScalarKindRegistry | None
            The registry resolving property type tokens. Defaults to the
            shared default registry.

        Returns
        -------
        header: Header
            The decoded header.
        """
        kinds = DEFAULT_SCALAR_KINDS if kinds is None else kinds

        if read_bytes(reader, 3) != SIGNATURE:
            raise MissingTokenError("ply")
        read_newline(reader)

        if read_bytes(reader, 7) != b"format ":
            raise MissingTokenError("format ")
        variant = read_bytes_before(reader, is_space, 32, "<space>")
        try:
            format = Format(variant.decode("latin-1"))
        except ValueError:
            raise InvalidFormatVariantError(variant.decode("utf-8", errors="replace")) from None

        version = string_from_bytes_ascii(read_bytes_before_newline(reader, MAX_TOKEN_SIZE))
        if not version:
            raise MissingTokenError("<version>")

        header = cls(format=format, version=version)
        elements = header.elements
        position = 0

        while True:
            keyword = read_bytes(reader, 8)
            if keyword == b"end_head":
                if read_bytes(reader, 2) != b"er":
                    raise MissingTokenError("end_header")
                read_newline(reader)
                break
            elif keyword == b"property":
                if read_bytes(reader, 1) != b" ":
                    raise MissingTokenError(" ")
                if not elements:
                    raise MissingTokenError("element", "Missing token before property")
                element = elements[-1]
                element.properties.add(_decode_property(reader, kinds))
                position += 1
            elif keyword == b"element ":
                name = _read_token(reader, "<element name>")
                count = _decode_count(read_bytes_before_newline(reader, MAX_TOKEN_SIZE))
                elements.add(Element(name, count))
                position += 1
            elif keyword == b"comment ":
                text = string_from_bytes_ascii(read_bytes_before_newline(reader, MAX_LINE_SIZE))
                header.comments.append(Comment(text, position, "comment"))
            elif keyword == b"obj_info":
                if read_bytes(reader, 1) != b" ":
                    raise MissingTokenError(" ")
                text = string_from_bytes_ascii(read_bytes_before_newline(reader, MAX_LINE_SIZE))
                header.comments.append(Comment(text, position, "obj_info"))
            else:
                raise MissingTokenError("comment, element, end_header, obj_info, or property")

        logger.debug("Header::decode (%s, %d elements)", header.format, len(elements))
        return header


def _check_line(text: str, what: str, allow_empty: bool = False) -> None:
    if not text and not allow_empty:
        raise ValueError(f"Empty {what}")
    if "\n" in text or "\r" in text:
        raise ValueError(f"Line break in {what}: {text!r}")


def _check_token(text: str, what: str) -> None:
    _check_line(text, what)
    if " " in text:
        raise ValueError(f"Space in {what}: {text!r}")


def _read_token(reader: BinaryIO, token: str) -> str:
    """
    Read a space-terminated token after any leading spaces.
    """
    first = read_byte_after(reader, is_space, token)
    data = bytes([first]) + read_bytes_before(reader, is_space, MAX_TOKEN_SIZE, token)
    if b"\n" in data or b"\r" in data:
        raise MissingTokenError(token)
    return string_from_bytes_ascii(data)


def _decode_count(data: bytes) -> int:
    text = string_from_bytes_ascii(data)
    if not text or not text.isdigit():
        raise InvalidCountError(text)
    count = int(text)
    if count > MAX_COUNT:
        raise InvalidCountError(text)
    return count


def _decode_property(reader: BinaryIO, kinds: ScalarKindRegistry) -> Property:
    first = _read_token(reader, "<property kind>")
    if first == LIST_KIND_NAME:
        count = kinds.resolve_scalar(_read_token(reader, "<list count kind>"))
        value = kinds.resolve_scalar(_read_token(reader, "<list value kind>"))
        kind = ListPropertyKind(count, value)
    else:
        kind = kinds.resolve_scalar(first)

    name = string_from_bytes_ascii(read_bytes_before_newline(reader, MAX_TOKEN_SIZE))
    if not name:
        raise MissingTokenError("<property name>")
    return Property(name, kind)


def parse_kind(text: str, kinds: Optional[ScalarKindRegistry] = None) -> PropertyKind:
    """
    Parse a property kind spelled as in the header, e.g. "float" or "list uchar int".
    """
    kinds = DEFAULT_SCALAR_KINDS if kinds is None else kinds
    tokens = text.split()
    if len(tokens) == 3 and tokens[0] == LIST_KIND_NAME:
        return ListPropertyKind(kinds.resolve_scalar(tokens[1]), kinds.resolve_scalar(tokens[2]))
    if len(tokens) == 1:
        return kinds.resolve_scalar(tokens[0])
    raise MissingTokenError(text, "Invalid property kind spelling")
