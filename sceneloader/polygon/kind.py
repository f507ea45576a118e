"""
Property kinds of the polygon header.

A scalar kind is a type token ("float", "uchar", ...) with its byte width,
looked up in a `ScalarKindRegistry`. A list kind pairs a count kind and a
value kind. The reserved "list" token is always resolvable with width 0 and
can be neither registered nor unregistered.
"""
import threading
import numpy as np
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from ..exceptions import InvalidPropertyKindError

LIST_KIND_NAME = "list"

BUILTIN_SCALAR_KINDS: List[Tuple[str, int]] = [
    # Common scalar types
    ("char", 1),
    ("uchar", 1),
    ("short", 2),
    ("ushort", 2),
    ("int", 4),
    ("uint", 4),
    ("float", 4),
    ("double", 8),
    # General scalar types
    ("int8", 1),
    ("uint8", 1),
    ("int16", 2),
    ("uint16", 2),
    ("int32", 4),
    ("uint32", 4),
    ("float32", 4),
    ("float64", 8),
    # Special scalar types
    ("byte", 1),
    ("ubyte", 1),
    ("half", 2),
    ("float16", 2),
    ("long", 8),
    ("ulong", 8),
    ("int64", 8),
    ("uint64", 8),
]

# Native-order numpy dtypes of the built-in kinds, used to infer casts.
NUMPY_DTYPES: Dict[str, np.dtype] = {
    name: np.dtype(code) for name, code in [
        ("char", "i1"), ("uchar", "u1"), ("short", "i2"), ("ushort", "u2"),
        ("int", "i4"), ("uint", "u4"), ("float", "f4"), ("double", "f8"),
        ("int8", "i1"), ("uint8", "u1"), ("int16", "i2"), ("uint16", "u2"),
        ("int32", "i4"), ("uint32", "u4"), ("float32", "f4"), ("float64", "f8"),
        ("byte", "i1"), ("ubyte", "u1"), ("half", "f2"), ("float16", "f2"),
        ("long", "i8"), ("ulong", "u8"), ("int64", "i8"), ("uint64", "u8"),
    ]
}

# Kind names written for numpy arrays by `kind_name_from_dtype`.
DTYPE_KIND_NAMES: Dict[str, str] = {
    "i1": "char", "u1": "uchar", "i2": "short", "u2": "ushort",
    "i4": "int", "u4": "uint", "f4": "float", "f8": "double",
    "f2": "half", "i8": "int64", "u8": "uint64",
}


@dataclass(frozen=True)
class ScalarPropertyKind:
    """
    A fixed-width scalar type.

    Parameters
    ----------
    name: str
        The type token, e.g. "float".
    size: int
        The byte width of one value.
    """
    name: str
    size: int

    def __str__(self) -> str:
        return self.name

    @property
    def dtype(self) -> Optional[np.dtype]:
        """The native-order numpy dtype, or None for kinds without one."""
        return NUMPY_DTYPES.get(self.name)


@dataclass(frozen=True)
class ListPropertyKind:
    """
    A count-prefixed variable-length list, declared as
    ``list <count-kind> <value-kind>``.
    """
    count: ScalarPropertyKind
    value: ScalarPropertyKind

    def __str__(self) -> str:
        return f"{LIST_KIND_NAME} {self.count} {self.value}"


PropertyKind = Union[ScalarPropertyKind, ListPropertyKind]


class _SharedLock:
    """
    Many concurrent readers or a single writer.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._condition:
            while self._writing:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._condition:
            while self._writing or self._readers:
                self._condition.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._condition:
                self._writing = False
                self._condition.notify_all()


class ScalarKindRegistry:
    """
    A thread-safe table of scalar type tokens and their byte widths.
    Lookups run concurrently; registration waits for them and excludes
    every other access.

    Every instance is seeded with the built-in kinds; independent instances
    can be created for tests or for readers that need extra kinds without
    touching the shared default.

    Parameters
    ----------
    extra_kinds: Iterable[Tuple[str, int]]
        Additional (name, size) pairs registered on top of the built-ins.

    Examples
    --------
    >>> kinds = ScalarKindRegistry()
    >>> kinds.search("float")
    ScalarPropertyKind(name='float', size=4)
    >>> kinds.register("vec3f", 12)
    >>> kinds.unregister("vec3f")
    ScalarPropertyKind(name='vec3f', size=12)
    """

    def __init__(self, extra_kinds: Iterable[Tuple[str, int]] = ()) -> None:
        self._lock = _SharedLock()
        self._kinds: Dict[str, ScalarPropertyKind] = {
            LIST_KIND_NAME: ScalarPropertyKind(LIST_KIND_NAME, 0),
        }
        for name, size in BUILTIN_SCALAR_KINDS:
            self._kinds[name] = ScalarPropertyKind(name, size)
        for name, size in extra_kinds:
            self.register(name, size)

    def search(self, name: str) -> Optional[ScalarPropertyKind]:
        """
        Look up a kind by its type token. Never fails.
        """
        with self._lock.shared():
            return self._kinds.get(name)

    def register(self, name: str, size: int) -> Optional[ScalarPropertyKind]:
        """
        Insert or replace a kind.

        Parameters
        ----------
        name: str
            The type token.
        size: int
            The byte width, must be positive.

        Returns
        -------
        previous: ScalarPropertyKind | None
            The replaced kind, if any.

        Raises
        ------
        InvalidPropertyKindError
            If `name` is the reserved "list" token, is not a single header
            token, or `size` is not positive.
        """
        if name == LIST_KIND_NAME:
            raise InvalidPropertyKindError(name, "Reserved property kind")
        if not isinstance(name, str) or not name or any(char.isspace() for char in name):
            raise InvalidPropertyKindError(name, "Property kind name must be a single token")
        if not isinstance(size, int) or size <= 0:
            raise InvalidPropertyKindError(name, f"Invalid size {size!r} for property kind")

        kind = ScalarPropertyKind(name, size)
        with self._lock.exclusive():
            previous = self._kinds.get(name)
            self._kinds[name] = kind
        return previous

    def unregister(self, name: str) -> Optional[ScalarPropertyKind]:
        """
        Remove a kind. The reserved "list" token is left in place and None is returned.
        """
        if name == LIST_KIND_NAME:
            return None
        with self._lock.exclusive():
            return self._kinds.pop(name, None)

    def items(self) -> List[Tuple[str, int]]:
        """A consistent snapshot of (name, size) pairs."""
        with self._lock.shared():
            return [(kind.name, kind.size) for kind in self._kinds.values()]

    def resolve_scalar(self, name: str) -> ScalarPropertyKind:
        """
        Look up a kind usable as a record field.

        Raises
        ------
        InvalidPropertyKindError
            If `name` is not registered or is the zero-width "list" marker.
        """
        kind = self.search(name)
        if kind is None or kind.size == 0:
            raise InvalidPropertyKindError(name)
        return kind

    def __contains__(self, name: str) -> bool:
        return self.search(name) is not None

    def __len__(self) -> int:
        with self._lock.shared():
            return len(self._kinds)


DEFAULT_SCALAR_KINDS = ScalarKindRegistry()


def search(name: str) -> Optional[ScalarPropertyKind]:
    return DEFAULT_SCALAR_KINDS.search(name)


def register(name: str, size: int) -> Optional[ScalarPropertyKind]:
    return DEFAULT_SCALAR_KINDS.register(name, size)


def unregister(name: str) -> Optional[ScalarPropertyKind]:
    return DEFAULT_SCALAR_KINDS.unregister(name)


def kind_name_from_dtype(dtype: np.dtype) -> str:
    """
    Return the type token written for a numpy dtype.

    Raises
    ------
    InvalidPropertyKindError
        If the dtype has no PLY counterpart.
    """
    dtype = np.dtype(dtype)
    code = f"{dtype.kind}{dtype.itemsize}"
    name = DTYPE_KIND_NAMES.get(code)
    if name is None:
        raise InvalidPropertyKindError(str(dtype), "No property kind for dtype")
    return name
