from .exceptions import (
    LoaderError,
    MissingTokenError,
    InvalidAsciiError,
    InvalidUtf8Error,
    InvalidPropertyKindError,
    InvalidFormatVariantError,
    InvalidCountError,
    DuplicateNameError,
    UnexpectedEofError,
    OutOfBoundsError,
    CastError,
    InvalidCameraModelIdError,
    UnknownCameraIdError,
    UnknownImageFileNameError,
)
from .polygon import (
    Element,
    Format,
    Header,
    ListPropertyKind,
    Object,
    Payload,
    Property,
    ScalarKindRegistry,
    ScalarPropertyKind,
)

__version__ = "0.1.0"
