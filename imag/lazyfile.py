"""
Lazily opened file handle.

A LazyFile knows the path of its backing file but only opens (or creates)
it on first access. It follows the file when the entry is relocated and
removes it on delete.
"""

import logging
from typing import BinaryIO, Optional

from .driver import Driver
from .errors import FileNotCreated, FileNotFound, NotFound, StoreError

logger = logging.getLogger(__name__)


class LazyFile:
    """
    Either absent (path only) or open (path plus handle).

    The absent -> open transition happens on first access and is only undone
    by relocate() or delete().
    """

    def __init__(self, path: str, driver: Driver):
        self._path = path
        self._driver = driver
        self._handle: Optional[BinaryIO] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def __repr__(self) -> str:
        state = "Open" if self.is_open else "Absent"
        return f"LazyFile.{state}({self._path!r})"

    def get_for_read_write(self) -> BinaryIO:
        """Return a handle on the existing file, positioned at the start.

        Each access is treated as a fresh pass over the file.

        Raises:
            FileNotFound: if the file does not exist
        """
        logger.debug("Getting lazy file: %r", self)
        if self._handle is not None:
            self._handle.seek(0)
            return self._handle
        try:
            self._handle = self._driver.open_existing(self._path)
        except NotFound as e:
            raise FileNotFound(f"No such file: {self._path}") from e
        return self._handle

    def get_or_create(self) -> BinaryIO:
        """Return a handle, creating the file (and parents) if needed.

        Raises:
            FileNotCreated: if the driver could not create the file
        """
        logger.debug("Creating lazy file: %r", self)
        if self._handle is not None:
            return self._handle
        try:
            self._handle = self._driver.create_or_truncate(self._path)
        except StoreError as e:
            raise FileNotCreated(f"Could not create {self._path}: {e}") from e
        return self._handle

    def read_text(self) -> str:
        """Read the whole file as UTF-8."""
        handle = self.get_for_read_write()
        return handle.read().decode("utf-8")

    def write_text(self, text: str) -> int:
        """Replace the file content with text (UTF-8).

        The text is encoded before the file is opened, so an encoding error
        leaves the existing file untouched.
        """
        data = text.encode("utf-8")
        handle = self.get_or_create()
        handle.seek(0)
        handle.write(data)
        handle.truncate()
        handle.flush()
        return len(data)

    def relocate(self, new_path: str, remove_old: bool) -> int:
        """Copy the backing file to new_path and point this handle there.

        Returns the number of bytes copied. Openness is preserved: an open
        handle is reopened on the new path. Once the copy exists the handle
        follows it, even if removing the old file fails.
        """
        was_open = self.is_open
        if self._handle is not None:
            self._handle.flush()
        copied = self._driver.copy(self._path, new_path)
        self.close()
        old_path, self._path = self._path, new_path
        logger.debug("Relocated %s -> %s (%d bytes)", old_path, new_path, copied)
        try:
            if remove_old:
                self._driver.remove_file(old_path)
        finally:
            if was_open:
                self._handle = self._driver.open_existing(new_path)
        return copied

    def delete(self) -> None:
        """Remove the backing file, open or not. Driver errors propagate."""
        self.close()
        self._driver.remove_file(self._path)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
