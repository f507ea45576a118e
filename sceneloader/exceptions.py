"""
Exceptions raised by the scene loader.

Every decoding or encoding step fails fast with one of the errors below, so
callers can treat any `LoaderError` as "not a valid instance of this format".
Failures of the underlying stream (``OSError``) are propagated untouched.
"""

from typing import Optional


class LoaderError(Exception):
    """Base exception for all loader errors."""

    pass


class MissingTokenError(LoaderError):
    """Raised when a required literal, keyword or delimiter is absent."""

    def __init__(self, token: str, message: str = "Missing token"):
        """
        Parameters
        ----------
        token : str
            Description of the expected token
        message : str
            Error message
        """
        self.token = token
        super().__init__(f"{message}: {token!r}")


class InvalidAsciiError(LoaderError):
    """Raised when pure ASCII text was required."""

    def __init__(self, text: str):
        """
        Parameters
        ----------
        text : str
            The offending text, lossily decoded
        """
        self.text = text
        super().__init__(f"Invalid ASCII text: {text!r}")


class InvalidUtf8Error(LoaderError):
    """Raised when well-formed UTF-8 text was required."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Invalid UTF-8 text: {text!r}")


class InvalidPropertyKindError(LoaderError):
    """Raised when a property type token is not registered or not usable."""

    def __init__(self, kind: str, message: str = "Invalid property kind"):
        self.kind = kind
        super().__init__(f"{message}: {kind!r}")


class InvalidFormatVariantError(LoaderError):
    """Raised when the header declares an unknown format variant."""

    def __init__(self, variant: str):
        self.variant = variant
        super().__init__(
            f"Invalid format variant: {variant!r} "
            "(expected ascii, binary_little_endian or binary_big_endian)"
        )


class InvalidCountError(LoaderError, ValueError):
    """Raised when an element count is not an unsigned 64-bit integer."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Invalid element count: {text!r}")


class DuplicateNameError(LoaderError):
    """Raised when an element or property name occurs twice in one scope."""

    def __init__(self, name: str, scope: Optional[str] = None):
        """
        Parameters
        ----------
        name : str
            The duplicated name
        scope : str | None
            The element owning the property, or None for element names
        """
        self.name = name
        self.scope = scope

        full_message = f"Duplicate name: {name!r}"
        if scope is not None:
            full_message = f"{full_message} (element: {scope})"

        super().__init__(full_message)


class UnexpectedEofError(LoaderError, EOFError):
    """Raised when the stream ends before the requested bytes were read."""

    def __init__(self, expected: int, actual: int):
        """
        Parameters
        ----------
        expected : int
            Number of bytes requested
        actual : int
            Number of bytes available before the end of the stream
        """
        self.expected = expected
        self.actual = actual
        super().__init__(f"Unexpected end of stream (requested: {expected}, read: {actual})")


class OutOfBoundsError(LoaderError, IndexError):
    """Raised when stored data is shorter than the geometry declared by the header."""

    def __init__(self, offset: int, limit: int, context: Optional[str] = None):
        """
        Parameters
        ----------
        offset : int
            The end offset that was required
        limit : int
            The number of items actually available
        context : str | None
            Where the mismatch was found
        """
        self.offset = offset
        self.limit = limit
        self.context = context

        full_message = f"Out of bounds (offset: {offset}, limit: {limit})"
        if context:
            full_message = f"{full_message} at {context}"

        super().__init__(full_message)


class CastError(LoaderError, ValueError):
    """Raised when a raw buffer length is not a multiple of the target width."""

    def __init__(self, size: int, width: int):
        self.size = size
        self.width = width
        super().__init__(f"Cannot cast {size} bytes into items of {width} bytes")


class InvalidCameraModelIdError(LoaderError):
    """Raised when a COLMAP camera record carries an unknown model id."""

    def __init__(self, model_id: int):
        self.model_id = model_id
        super().__init__(f"Invalid camera model id: {model_id}")


class UnknownCameraIdError(LoaderError, KeyError):
    """Raised when an image refers to a camera that was not loaded."""

    def __init__(self, camera_id: int):
        self.camera_id = camera_id
        super().__init__(f"Unknown camera id: {camera_id}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownImageFileNameError(LoaderError, KeyError):
    """Raised when an image record has no matching image file."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Unknown image file name: {file_name!r}")

    def __str__(self) -> str:
        return self.args[0]
