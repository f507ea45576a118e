"""
Polygon payload model and codec.

The payload stores one buffer per property, index-aligned with the header:
``payload.data[element_index][property_index]`` is

- a `bytearray` of concatenated fixed-width values for a scalar property, or
- a `list` of `bytes`, one entry per record, for a list property.

Stored values are always in native byte order; the codec swaps bytes when
the declared format differs from the host.
"""
import logging
import numpy as np
from typing import BinaryIO, List, Union

from ..exceptions import CastError, OutOfBoundsError
from ..function.decode import read_bytes
from ..function.encode import write_bytes
from .header import Element, Header
from .kind import ListPropertyKind, ScalarPropertyKind

logger = logging.getLogger(__name__)

PropertyData = Union[bytearray, List[bytes]]
ElementData = List[PropertyData]

# Encoded bytes are flushed to the writer in chunks of about this size.
FLUSH_SIZE = 1 << 16


def swap_chunks(data: bytes, width: int) -> bytes:
    """
    Reverse every `width`-byte chunk of `data` independently.
    """
    if width <= 1 or not data:
        return bytes(data)
    if len(data) % width:
        raise CastError(len(data), width)
    chunks = np.frombuffer(data, dtype=np.uint8).reshape(-1, width)
    return chunks[:, ::-1].tobytes()


def empty_property_data(kind) -> PropertyData:
    if isinstance(kind, ScalarPropertyKind):
        return bytearray()
    elif isinstance(kind, ListPropertyKind):
        return []
    raise TypeError(f"Unknown property kind: {kind!r}")


class Payload:
    """
    Polygon payload.

    Parameters
    ----------
    data: List[ElementData]
        Property buffers, index-aligned with the header elements and their
        properties.
    """

    def __init__(self, data: List[ElementData] = None) -> None:
        self.data: List[ElementData] = [] if data is None else data

    @classmethod
    def from_header(cls, header: Header) -> "Payload":
        """
        Build an empty payload whose shape matches `header`.
        """
        return cls([
            [empty_property_data(prop.kind) for prop in element.properties]
            for element in header.elements
        ])

    @property
    def element_count(self) -> int:
        return len(self.data)

    @property
    def property_count(self) -> int:
        return sum(len(element) for element in self.data)

    @property
    def byte_count(self) -> int:
        count = 0
        for element in self.data:
            for prop in element:
                if isinstance(prop, list):
                    count += sum(len(record) for record in prop)
                else:
                    count += len(prop)
        return count

    def check(self, header: Header) -> None:
        """
        Check that the payload has the shape declared by `header`.

        Raises
        ------
        ValueError
            If the number of elements or properties, or a property variant,
            does not match. This is a programming error, not a data error.
        """
        if len(self.data) != len(header.elements):
            raise ValueError(
                f"Payload has {len(self.data)} elements, header declares {len(header.elements)}"
            )
        for element, element_data in zip(header.elements, self.data):
            if len(element_data) != len(element.properties):
                raise ValueError(
                    f"Payload element {element.name!r} has {len(element_data)} properties, "
                    f"header declares {len(element.properties)}"
                )
            for prop, prop_data in zip(element.properties, element_data):
                if isinstance(prop.kind, ListPropertyKind) != isinstance(prop_data, list):
                    raise ValueError(
                        f"Payload property {element.name}.{prop.name} does not match kind {prop.kind}"
                    )

    @classmethod
    def decode_with(cls, reader: BinaryIO, header: Header) -> "Payload":
        """
        Decode the binary payload described by `header`.

        Parameters
        ----------
        reader: BinaryIO
            The byte stream positioned just after ``end_header``.
        header: Header
            The decoded header.

        Raises
        ------
        NotImplementedError
            If the header declares the ASCII format.
        UnexpectedEofError
            If the stream ends before all records were read.
        """
        if header.format.is_ascii:
            raise NotImplementedError("Unimplemented: ASCII format decoding")

        byteorder = header.format.byteorder
        swap = not header.format.is_binary_native_endian()

        data = []
        for element in header.elements:
            record_size = element.record_size()
            if record_size is not None:
                data.append(_decode_scalar_element(reader, element, record_size, swap))
            else:
                data.append(_decode_element(reader, element, byteorder, swap))

        payload = cls(data)
        logger.debug("Payload::decode_with %s", payload)
        return payload

    def encode(self, writer: BinaryIO, header: Header) -> None:
        """
        Encode the payload in the format declared by `header`.

        Raises
        ------
        NotImplementedError
            If the header declares the ASCII format.
        OutOfBoundsError
            If a buffer holds fewer values or records than the header declares.
        CastError
            If a list record length is not a multiple of its value width.
        """
        if header.format.is_ascii:
            raise NotImplementedError("Unimplemented: ASCII format encoding")
        self.check(header)

        byteorder = header.format.byteorder
        swap = not header.format.is_binary_native_endian()

        for element, element_data in zip(header.elements, self.data):
            if element.record_size() is not None:
                _encode_scalar_element(writer, element, element_data, swap)
            else:
                _encode_element(writer, element, element_data, byteorder, swap)

        logger.debug("Payload::encode %s", self)

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, index: int) -> ElementData:
        return self.data[index]

    def __iter__(self):
        return iter(self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Payload):
            return NotImplemented
        return self.data == other.data

    def __repr__(self) -> str:
        return f"Payload({self})"

    def __str__(self) -> str:
        return f"[{self.element_count} elements, {self.property_count} properties, {self.byte_count} bytes]"


def _decode_scalar_element(
    reader: BinaryIO,
    element: Element,
    record_size: int,
    swap: bool,
) -> ElementData:
    """
    Read a scalar-only element as one table and split it into columns.
    """
    if element.count == 0 or record_size == 0:
        return [bytearray() for _ in element.properties]

    raw = read_bytes(reader, element.count * record_size)
    table = np.frombuffer(raw, dtype=np.uint8).reshape(element.count, record_size)

    columns = []
    offset = 0
    for prop in element.properties:
        width = prop.kind.size
        column = table[:, offset:offset + width]
        if swap and width > 1:
            column = column[:, ::-1]
        columns.append(bytearray(column.tobytes()))
        offset += width
    return columns


def _decode_element(
    reader: BinaryIO,
    element: Element,
    byteorder: str,
    swap: bool,
) -> ElementData:
    columns = [empty_property_data(prop.kind) for prop in element.properties]
    kinds = [prop.kind for prop in element.properties]

    for _ in range(element.count):
        for kind, column in zip(kinds, columns):
            if isinstance(kind, ScalarPropertyKind):
                datum = read_bytes(reader, kind.size)
                column += datum[::-1] if swap else datum
            elif isinstance(kind, ListPropertyKind):
                length = int.from_bytes(read_bytes(reader, kind.count.size), byteorder, signed=False)
                datum = read_bytes(reader, length * kind.value.size)
                if swap:
                    datum = swap_chunks(datum, kind.value.size)
                column.append(datum)
            else:
                raise TypeError(f"Unknown property kind: {kind!r}")
    return columns


def _encode_scalar_element(
    writer: BinaryIO,
    element: Element,
    element_data: ElementData,
    swap: bool,
) -> None:
    if element.count == 0 or not element.properties:
        return

    parts = []
    for prop, column in zip(element.properties, element_data):
        width = prop.kind.size
        end = element.count * width
        if len(column) < end:
            raise OutOfBoundsError(
                end, len(column),
                f"element {element.name!r} record {len(column) // width} property {prop.name!r}",
            )
        part = np.frombuffer(column, dtype=np.uint8, count=end).reshape(element.count, width)
        if swap and width > 1:
            part = part[:, ::-1]
        parts.append(part)

    write_bytes(writer, np.concatenate(parts, axis=1).tobytes())


def _encode_element(
    writer: BinaryIO,
    element: Element,
    element_data: ElementData,
    byteorder: str,
    swap: bool,
) -> None:
    kinds = [prop.kind for prop in element.properties]
    offsets = [0] * len(kinds)
    buffer = bytearray()

    for index in range(element.count):
        for position, (kind, column) in enumerate(zip(kinds, element_data)):
            if isinstance(kind, ScalarPropertyKind):
                start = offsets[position]
                end = start + kind.size
                if end > len(column):
                    raise OutOfBoundsError(
                        end, len(column),
                        f"element {element.name!r} record {index} "
                        f"property {element.properties[position].name!r}",
                    )
                datum = bytes(column[start:end])
                buffer += datum[::-1] if swap else datum
                offsets[position] = end
            elif isinstance(kind, ListPropertyKind):
                if index >= len(column):
                    raise OutOfBoundsError(
                        index + 1, len(column),
                        f"element {element.name!r} property {element.properties[position].name!r}",
                    )
                datum = column[index]
                width = kind.value.size
                if len(datum) % width:
                    raise CastError(len(datum), width)
                length = len(datum) // width
                try:
                    buffer += length.to_bytes(kind.count.size, byteorder, signed=False)
                except OverflowError:
                    raise OutOfBoundsError(
                        length, (1 << (8 * kind.count.size)) - 1,
                        f"list length of element {element.name!r} record {index}",
                    ) from None
                buffer += swap_chunks(datum, width) if swap else datum
            else:
                raise TypeError(f"Unknown property kind: {kind!r}")

        if len(buffer) >= FLUSH_SIZE:
            write_bytes(writer, bytes(buffer))
            buffer.clear()

    if buffer:
        write_bytes(writer, bytes(buffer))
