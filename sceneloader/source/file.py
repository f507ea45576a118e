import io
import os
import glob
import logging
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)


class File(io.RawIOBase):
    """
    A file handle that remembers its path.

    Parameters
    ----------
    path: str | Path
        The file path.
    writable: bool
        Open for reading and writing, creating the file if it is missing.
        Existing contents are never truncated.

    Examples
    --------
    >>> with File("sparse/0/cameras.bin") as file:
    ...     cameras = decode_cameras(file)
    """
    inner = None

    def __init__(self, path: Union[str, Path], writable: bool = False) -> None:
        super().__init__()
        self.path = Path(path)
        if writable:
            self.path.touch(exist_ok=True)
            self.inner = open(self.path, "r+b")
        else:
            self.inner = open(self.path, "rb")

    def read(self, size: int = -1) -> bytes:
        """
        Read `size` bytes, or everything from the current position when negative.
        """
        return self.inner.read(size)

    def readinto(self, buffer) -> int:
        return self.inner.readinto(buffer)

    def write(self, data) -> int:
        return self.inner.write(data)

    def rewind(self) -> None:
        self.inner.seek(0)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self.inner.seek(offset, whence)

    def tell(self) -> int:
        return self.inner.tell()

    def flush(self) -> None:
        if self.inner is not None and not self.inner.closed:
            self.inner.flush()

    def readable(self) -> bool:
        return self.inner.readable()

    def writable(self) -> bool:
        return self.inner.writable()

    def seekable(self) -> bool:
        return True

    def close(self) -> None:
        if self.inner is not None and not self.inner.closed:
            self.inner.close()
        super().close()

    def __repr__(self) -> str:
        return f"File({str(self.path)!r})"


def open_files(pattern: Union[str, Path], writable: bool = False) -> Dict[Path, File]:
    """
    Open every regular file matching a glob pattern.

    A directory path matches nothing; use ``directory / "*"`` for its files.
    Symbolic links are followed.

    Parameters
    ----------
    pattern: str | Path
        The glob pattern, e.g. ``"images/*"`` or ``"images/**/*.png"``.
    writable: bool
        Passed to `File`.

    Returns
    -------
    files: Dict[Path, File]
        Path to handle, in sorted path order.
    """
    paths = sorted(
        Path(path) for path in glob.glob(os.fspath(pattern), recursive=True)
        if os.path.isfile(path)
    )
    files = {path: File(path, writable) for path in paths}
    logger.debug("open_files %s (%d files)", pattern, len(files))
    return files
