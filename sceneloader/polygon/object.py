"""
Polygon object: a header bound to its payload.

Examples
--------
>>> obj = Object.read("points3D.ply")
>>> xs = obj.get_property("vertex", "x").numpy()
>>> obj.header.format = Format.BINARY_BIG_ENDIAN
>>> obj.write("points3D.be.ply")
"""
import logging
import numpy as np
from io import BytesIO
from pathlib import Path
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, List, Mapping, Optional, Sequence, Union

from ..exceptions import CastError, InvalidPropertyKindError
from .header import Element, Format, Header, Property
from .kind import (
    DEFAULT_SCALAR_KINDS,
    ListPropertyKind,
    PropertyKind,
    ScalarKindRegistry,
    kind_name_from_dtype,
)
from .payload import ElementData, Payload, PropertyData, empty_property_data

logger = logging.getLogger(__name__)


class PropertyEntry:
    """
    A property's metadata together with its stored data.

    The entry refers to the payload slot, so assigning `data` writes back
    into the owning object.
    """

    def __init__(self, meta: Property, element_data: ElementData, index: int) -> None:
        self.meta = meta
        self._element_data = element_data
        self._index = index

    @property
    def name(self) -> str:
        return self.meta.name

    @property
    def kind(self) -> PropertyKind:
        return self.meta.kind

    @property
    def data(self) -> PropertyData:
        return self._element_data[self._index]

    @data.setter
    def data(self, value) -> None:
        if isinstance(self.meta.kind, ListPropertyKind):
            self._element_data[self._index] = [bytes(memoryview(record)) for record in value]
        else:
            self._element_data[self._index] = bytearray(memoryview(value))

    def cast(self, dtype) -> Union[np.ndarray, List[np.ndarray]]:
        """
        View the stored bytes as values of `dtype`.

        Scalar properties give one array sharing memory with the payload, so
        writes through it change the object. List properties give one array
        per record.

        Raises
        ------
        CastError
            If a buffer length is not a multiple of the dtype item size.
        """
        dtype = np.dtype(dtype)
        if isinstance(self.meta.kind, ListPropertyKind):
            return [_cast(record, dtype) for record in self.data]
        return _cast(self.data, dtype)

    def numpy(self) -> Union[np.ndarray, List[np.ndarray]]:
        """
        Cast with the dtype matching the declared kind.
        """
        kind = self.meta.kind
        scalar = kind.value if isinstance(kind, ListPropertyKind) else kind
        if scalar.dtype is None:
            raise InvalidPropertyKindError(scalar.name, "No numpy dtype for property kind")
        return self.cast(scalar.dtype)

    def __len__(self) -> int:
        data = self.data
        if isinstance(data, list):
            return len(data)
        return len(data) // self.meta.kind.size

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropertyEntry):
            return NotImplemented
        return self.meta == other.meta and self.data == other.data

    def __repr__(self) -> str:
        return f"PropertyEntry({self.meta}, {len(self)} records)"


@dataclass
class ElementEntry:
    """
    An element's metadata together with its property buffers.
    """
    meta: Element
    data: ElementData

    @property
    def name(self) -> str:
        return self.meta.name

    @property
    def count(self) -> int:
        return self.meta.count

    def get_property(self, name: str) -> Optional[PropertyEntry]:
        index = self.meta.properties.index(name)
        if index is None or index >= len(self.data):
            return None
        return PropertyEntry(self.meta.properties[index], self.data, index)

    def iter_properties(self) -> Iterator[PropertyEntry]:
        for index, prop in enumerate(self.meta.properties):
            if index < len(self.data):
                yield PropertyEntry(prop, self.data, index)

    def __getitem__(self, name: str) -> PropertyEntry:
        entry = self.get_property(name)
        if entry is None:
            raise KeyError(name)
        return entry

    def __iter__(self) -> Iterator[PropertyEntry]:
        return self.iter_properties()


@dataclass
class Object:
    """
    Polygon object.

    Parameters
    ----------
    header: Header
        The header describing the payload.
    payload: Payload
        The property buffers, index-aligned with `header`.
    """
    header: Header = field(default_factory=Header)
    payload: Payload = None

    def __post_init__(self):
        if self.payload is None:
            self.payload = Payload.from_header(self.header)
        self.payload.check(self.header)

    @classmethod
    def decode(cls, reader: BinaryIO, kinds: Optional[ScalarKindRegistry] = None) -> "Object":
        header = Header.decode(reader, kinds)
        payload = Payload.decode_with(reader, header)
        logger.debug("Object::decode (%d elements)", len(header.elements))
        return cls(header, payload)

    @classmethod
    def from_bytes(cls, data: bytes, kinds: Optional[ScalarKindRegistry] = None) -> "Object":
        return cls.decode(BytesIO(data), kinds)

    @classmethod
    def read(cls, path: Union[str, Path], kinds: Optional[ScalarKindRegistry] = None) -> "Object":
        with open(path, "rb") as file:
            return cls.decode(file, kinds)

    def encode(self, writer: BinaryIO) -> None:
        """
        Write the header immediately followed by the binary payload.

        The format and the payload shape are checked before the header is
        written. A short buffer is only found while streaming records, so
        `writer` may then hold a partial object; `write` never leaves one on
        disk.

        Raises
        ------
        NotImplementedError
            If the header declares the ASCII format.
        ValueError
            If the payload shape does not match the header.
        OutOfBoundsError
            If a buffer holds fewer values or records than the header declares.
        CastError
            If a list record length is not a multiple of its value width.
        """
        if self.header.format.is_ascii:
            raise NotImplementedError("Unimplemented: ASCII format encoding")
        self.payload.check(self.header)

        self.header.encode(writer)
        self.payload.encode(writer, self.header)
        logger.debug("Object::encode (%d elements)", len(self.header.elements))

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.encode(buffer)
        return buffer.getvalue()

    def write(self, path: Union[str, Path]) -> None:
        """
        Encode to `path`. The file is only opened once encoding succeeded, so
        an existing file is left as it was on error.
        """
        data = self.to_bytes()
        with open(path, "wb") as file:
            file.write(data)

    def get_element(self, name: str) -> Optional[ElementEntry]:
        """
        Get an element by name, or None if there is no such element.
        """
        index = self.header.elements.index(name)
        if index is None or index >= len(self.payload.data):
            return None
        return ElementEntry(self.header.elements[index], self.payload.data[index])

    def get_property(self, element_name: str, property_name: str) -> Optional[PropertyEntry]:
        """
        Get a property of an element, or None if either is missing.
        """
        element = self.get_element(element_name)
        if element is None:
            return None
        return element.get_property(property_name)

    def iter_elements(self) -> Iterator[ElementEntry]:
        for meta, data in zip(self.header.elements, self.payload.data):
            yield ElementEntry(meta, data)

    def add_element(self, name: str, count: int = 0) -> ElementEntry:
        meta = self.header.add_element(name, count)
        data: ElementData = []
        self.payload.data.append(data)
        return ElementEntry(meta, data)

    def add_property(
        self,
        element_name: str,
        name: str,
        kind: Union[PropertyKind, str],
        data=None,
        kinds: Optional[ScalarKindRegistry] = None,
    ) -> PropertyEntry:
        """
        Append a property to an existing element, with optional initial data.

        Raises
        ------
        KeyError
            If the element does not exist.
        """
        element = self.get_element(element_name)
        if element is None:
            raise KeyError(element_name)
        meta = element.meta.add_property(name, kind, kinds)
        element.data.append(empty_property_data(meta.kind))
        entry = PropertyEntry(meta, element.data, len(element.data) - 1)
        if data is not None:
            entry.data = data
        return entry

    @classmethod
    def from_arrays(
        cls,
        elements: Mapping[str, Mapping[str, Union[np.ndarray, Sequence[np.ndarray]]]],
        format: Format = None,
        list_count_kind: str = "uchar",
        kinds: Optional[ScalarKindRegistry] = None,
    ) -> "Object":
        """
        Build an object from numpy columns.

        Parameters
        ----------
        elements: Mapping[str, Mapping[str, ndarray | Sequence[ndarray]]]
            Element name to property columns. A 1-D array becomes a scalar
            property; a sequence of 1-D arrays becomes a list property with
            one array per record.
        format: Format
            The binary format, native endianness by default.
        list_count_kind: str
            The kind of list count fields.
        kinds: ScalarKindRegistry | None
            The registry resolving kind names.

        Examples
        --------
        >>> obj = Object.from_arrays({
        ...     "vertex": {"x": np.zeros(3, "f4"), "y": np.ones(3, "f4")},
        ...     "face": {"vertex_indices": [np.array([0, 1, 2], "i4")]},
        ... })
        """
        kinds = DEFAULT_SCALAR_KINDS if kinds is None else kinds
        header = Header(format=Format.binary_native_endian() if format is None else format)
        obj = cls(header)

        for element_name, columns in elements.items():
            entry = obj.add_element(element_name)
            count = None
            for name, values in columns.items():
                if isinstance(values, np.ndarray) and values.dtype != object:
                    if values.ndim != 1:
                        raise ValueError(f"Property {element_name}.{name} must be 1-D, got {values.shape}")
                    kind = kinds.resolve_scalar(kind_name_from_dtype(values.dtype))
                    data = _native(values).tobytes()
                    length = len(values)
                else:
                    records = [np.asarray(record) for record in values]
                    dtype = np.result_type(*records) if records else np.dtype("i4")
                    value = kinds.resolve_scalar(kind_name_from_dtype(dtype))
                    kind = ListPropertyKind(kinds.resolve_scalar(list_count_kind), value)
                    data = [_native(record.astype(dtype, copy=False).reshape(-1)).tobytes() for record in records]
                    length = len(records)
                if count is not None and length != count:
                    raise ValueError(
                        f"Property {element_name}.{name} has {length} records, expected {count}"
                    )
                count = length
                obj.add_property(element_name, name, kind, data)
            entry.meta.count = count or 0

        return obj

    def __getitem__(self, name: str) -> ElementEntry:
        entry = self.get_element(name)
        if entry is None:
            raise KeyError(name)
        return entry

    def __iter__(self) -> Iterator[ElementEntry]:
        return self.iter_elements()

    def __str__(self) -> str:
        return f"{self.header}----------\n{self.payload}"


def _cast(data, dtype: np.dtype) -> np.ndarray:
    if len(data) % dtype.itemsize:
        raise CastError(len(data), dtype.itemsize)
    return np.frombuffer(data, dtype=dtype)


def _native(values: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(values.astype(values.dtype.newbyteorder("="), copy=False))
