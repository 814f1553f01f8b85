"""
I/O drivers for the store.

The Store and LazyFile never touch the filesystem directly; they go through
a Driver. IoDriver talks to the OS. MemoryDriver keeps everything in a dict
and is what tests construct, one instance per test.
"""

import io
import logging
import os
import shutil
import threading
from typing import BinaryIO, Protocol, runtime_checkable

from .errors import IoError, NotFound

logger = logging.getLogger(__name__)


@runtime_checkable
class Driver(Protocol):
    """
    Filesystem capabilities used by the store.

    Implemented by:
    - IoDriver (real filesystem)
    - MemoryDriver (in-memory, for tests)
    """

    def create_dir_all(self, path: str) -> None: ...

    def copy(self, src: str, dst: str) -> int: ...

    def remove_file(self, path: str) -> None: ...

    def open_existing(self, path: str) -> BinaryIO: ...

    def create_or_truncate(self, path: str) -> BinaryIO: ...

    def list_dir(self, path: str) -> list[str]: ...

    def exists(self, path: str) -> bool: ...


def _translate(e: OSError, path: str) -> Exception:
    if isinstance(e, FileNotFoundError):
        return NotFound(f"No such file: {path}")
    return IoError(f"{path}: {e}")


class IoDriver:
    """Driver backed by the real filesystem."""

    def create_dir_all(self, path: str) -> None:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise IoError(f"Could not create directory {path}: {e}") from e

    def copy(self, src: str, dst: str) -> int:
        try:
            shutil.copyfile(src, dst)
            return os.path.getsize(dst)
        except OSError as e:
            raise _translate(e, src) from e

    def remove_file(self, path: str) -> None:
        try:
            os.remove(path)
        except OSError as e:
            raise _translate(e, path) from e

    def open_existing(self, path: str) -> BinaryIO:
        try:
            return open(path, "r+b")
        except OSError as e:
            raise _translate(e, path) from e

    def create_or_truncate(self, path: str) -> BinaryIO:
        parent = os.path.dirname(path)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
            return open(path, "w+b")
        except OSError as e:
            raise IoError(f"Could not create {path}: {e}") from e

    def list_dir(self, path: str) -> list[str]:
        try:
            return sorted(
                name for name in os.listdir(path)
                if os.path.isfile(os.path.join(path, name))
            )
        except OSError as e:
            raise _translate(e, path) from e

    def exists(self, path: str) -> bool:
        return os.path.exists(path)


class MemoryFile(io.RawIOBase):
    """
    Read/write handle onto a MemoryDriver buffer.

    Writes go straight into the driver's shared bytearray, so every handle
    on the same path observes the same bytes.
    """

    def __init__(self, driver: "MemoryDriver", path: str):
        self._driver = driver
        self._path = path
        self._pos = 0

    @property
    def name(self) -> str:
        return self._path

    def _buffer(self) -> bytearray:
        with self._driver._lock:
            try:
                return self._driver._files[self._path]
            except KeyError:
                raise NotFound(f"No such file: {self._path}") from None

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed file")

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        self._check_open()
        buf = self._buffer()
        data = buf[self._pos:self._pos + len(b)]
        n = len(data)
        b[:n] = data
        self._pos += n
        return n

    def write(self, b) -> int:
        self._check_open()
        data = bytes(b)
        buf = self._buffer()
        with self._driver._lock:
            if self._pos > len(buf):
                buf.extend(b"\0" * (self._pos - len(buf)))
            buf[self._pos:self._pos + len(data)] = data
        self._pos += len(data)
        return len(data)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = len(self._buffer()) + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if pos < 0:
            raise ValueError("Negative seek position")
        self._pos = pos
        return pos

    def tell(self) -> int:
        self._check_open()
        return self._pos

    def truncate(self, size=None) -> int:
        self._check_open()
        if size is None:
            size = self._pos
        buf = self._buffer()
        with self._driver._lock:
            if size < len(buf):
                del buf[size:]
            else:
                buf.extend(b"\0" * (size - len(buf)))
        return size


class MemoryDriver:
    """
    In-memory driver: a mapping from path to byte buffer.

    Each instance is an independent filesystem. Access is locked so a driver
    may be shared between threads of one test.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._files: dict[str, bytearray] = {}
        self._dirs: set[str] = set()

    @staticmethod
    def _norm(path: str) -> str:
        return os.path.normpath(path)

    def _add_dirs(self, path: str) -> None:
        while path and path not in self._dirs:
            self._dirs.add(path)
            parent = os.path.dirname(path)
            if parent == path:
                break
            path = parent

    def create_dir_all(self, path: str) -> None:
        path = self._norm(path)
        with self._lock:
            if path in self._files:
                raise IoError(f"Not a directory: {path}")
            self._add_dirs(path)

    def copy(self, src: str, dst: str) -> int:
        src, dst = self._norm(src), self._norm(dst)
        with self._lock:
            if src not in self._files:
                raise NotFound(f"No such file: {src}")
            data = bytearray(self._files[src])
            self._files[dst] = data
            self._add_dirs(os.path.dirname(dst))
        logger.debug("copy(%s, %s): %d bytes", src, dst, len(data))
        return len(data)

    def remove_file(self, path: str) -> None:
        path = self._norm(path)
        with self._lock:
            if self._files.pop(path, None) is None:
                raise NotFound(f"No such file: {path}")

    def open_existing(self, path: str) -> MemoryFile:
        path = self._norm(path)
        with self._lock:
            if path not in self._files:
                raise NotFound(f"No such file: {path}")
        return MemoryFile(self, path)

    def create_or_truncate(self, path: str) -> MemoryFile:
        path = self._norm(path)
        with self._lock:
            if path in self._dirs:
                raise IoError(f"Is a directory: {path}")
            self._files[path] = bytearray()
            self._add_dirs(os.path.dirname(path))
        return MemoryFile(self, path)

    def list_dir(self, path: str) -> list[str]:
        path = self._norm(path)
        with self._lock:
            if path not in self._dirs:
                raise NotFound(f"No such directory: {path}")
            return sorted(
                os.path.basename(p) for p in self._files
                if os.path.dirname(p) == path
            )

    def exists(self, path: str) -> bool:
        path = self._norm(path)
        with self._lock:
            return path in self._files or path in self._dirs

    # Test helpers

    def read_bytes(self, path: str) -> bytes:
        with self._lock:
            try:
                return bytes(self._files[self._norm(path)])
            except KeyError:
                raise NotFound(f"No such file: {path}") from None

    def write_bytes(self, path: str, data: bytes) -> None:
        path = self._norm(path)
        with self._lock:
            self._files[path] = bytearray(data)
            self._add_dirs(os.path.dirname(path))
