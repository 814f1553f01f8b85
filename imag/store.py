"""
Flat-file entry store.

Entries live as individual files directly under the store root, one per
entry, named ``<module>-<TYPE>-<hash>.imag``. The Store keeps an
identity-preserving cache: once an entry is loaded or created, every lookup
of its FileID returns the same Entry object.

The cache does not track whether an entry has been written; callers persist
explicitly. There is no locking: concurrent writers to the same store
directory (other processes, other Store instances) are not supported.
"""

import fnmatch
import glob
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .driver import Driver, IoDriver
from .errors import (
    AmbiguousHash,
    EntryNotFound,
    FileNotFound,
    InvalidIdentifier,
    NotFound,
    ParseError,
    StoreError,
)
from .lazyfile import LazyFile
from .parser import HeaderParser
from .types import (
    STORE_FILE_EXTENSION,
    Entry,
    FileHash,
    FileID,
    HeaderData,
    entry_filename,
    module_name,
    parse_entry_filename,
)

logger = logging.getLogger(__name__)


@dataclass
class LoadResult(Sequence):
    """
    Entries loaded by a bulk operation, plus the files that failed.

    Behaves as a sequence of the loaded entries. Per-file failures are kept
    in ``errors`` as (filename, exception) pairs instead of aborting.
    """
    entries: list[Entry] = field(default_factory=list)
    errors: list[tuple[str, StoreError]] = field(default_factory=list)

    def __getitem__(self, index):
        return self.entries[index]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def ok(self) -> bool:
        return not self.errors


class Store:
    """
    Cache plus filesystem persistence for one store root.

    All raw I/O goes through the driver, so tests can pass a MemoryDriver.
    """

    def __init__(self, path: Union[str, os.PathLike], driver: Optional[Driver] = None):
        """
        Args:
            path: Store root directory, created if missing
            driver: I/O driver (default: real filesystem)

        Raises:
            IoError: if the root directory cannot be created
        """
        self._path = os.fspath(path).rstrip("/") or "/"
        self._driver = driver if driver is not None else IoDriver()
        self._cache: dict[FileID, Entry] = {}
        self._files: dict[FileID, LazyFile] = {}
        try:
            self._driver.create_dir_all(self._path)
        except StoreError:
            logger.error("Could not create store: '%s'", self._path)
            raise

    @property
    def path(self) -> str:
        return self._path

    @property
    def driver(self) -> Driver:
        return self._driver

    def entry_path(self, module: Any, id: FileID) -> str:
        """Path of an entry's backing file: ``{root}/{module}-{id}.imag``."""
        return f"{self._path}/{entry_filename(module_name(module), id)}"

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def _put_in_cache(self, entry: Entry) -> FileID:
        self._cache[entry.id] = entry
        return entry.id

    def _lazy_file(self, id: FileID, path: str) -> LazyFile:
        lf = self._files.get(id)
        if lf is None or lf.path != path:
            lf = LazyFile(path, self._driver)
            self._files[id] = lf
        return lf

    def get(self, id: FileID) -> Optional[Entry]:
        """Cached entry for id, without touching the filesystem."""
        return self._cache.get(id)

    def cached_ids(self) -> list[FileID]:
        return list(self._cache)

    def __contains__(self, id: FileID) -> bool:
        return id in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    # -------------------------------------------------------------------------
    # Entry creation
    # -------------------------------------------------------------------------

    def new_entry_with_header_and_content(
        self,
        module: Any,
        header: HeaderData,
        content: str,
    ) -> FileID:
        """
        Create a new in-memory entry owned by module.

        Nothing is written until persist() is called.

        Returns:
            The FileID of the new entry
        """
        entry = Entry(
            owner=module_name(module),
            id=FileID.generate(),
            header=header,
            content=content,
        )
        logger.debug("Create new entry: %s", entry)
        return self._put_in_cache(entry)

    def new_entry(self, module: Any) -> FileID:
        return self.new_entry_with_header_and_content(module, None, "")

    def new_entry_with_header(self, module: Any, header: HeaderData) -> FileID:
        return self.new_entry_with_header_and_content(module, header, "")

    def new_entry_with_content(self, module: Any, content: str) -> FileID:
        return self.new_entry_with_header_and_content(module, None, content)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _resolve(self, entry: Union[Entry, FileID]) -> Entry:
        if isinstance(entry, Entry):
            return entry
        cached = self._cache.get(entry)
        if cached is None:
            raise EntryNotFound(f"Entry not in store: {entry}")
        return cached

    def persist(self, parser: HeaderParser, entry: Union[Entry, FileID]) -> str:
        """
        Write an entry to its backing file, creating the file if needed.

        On failure the entry stays cached; memory and disk may then differ
        until the caller retries or discards it.

        Returns:
            Path of the written file

        Raises:
            SerializeError, SchemaError: the parser rejected the entry
            IoError: the file could not be written
        """
        entry = self._resolve(entry)
        text = parser.write(entry.header, entry.content)
        path = self.entry_path(entry.owner, entry.id)
        with self._lazy_file(entry.id, path) as lf:
            written = lf.write_text(text)
        logger.info("Persisted %s (%d bytes)", path, written)
        return path

    def load(self, module: Any, parser: HeaderParser, id: FileID) -> Entry:
        """
        Load an entry, from the cache if present, else from its file.

        Raises:
            EntryNotFound: no file for this module and id
            ParseError, SchemaError: the file could not be decoded
            IoError: the file could not be read
        """
        cached = self._cache.get(id)
        if cached is not None:
            return cached

        name = module_name(module)
        path = self.entry_path(name, id)
        logger.debug("Loading path = '%s'", path)
        try:
            with self._lazy_file(id, path) as lf:
                text = lf.read_text()
        except FileNotFound as e:
            raise EntryNotFound(f"No entry {id} for module {name!r}") from e
        except UnicodeDecodeError as e:
            raise ParseError(f"{path} is not valid UTF-8: {e}") from e

        header, content = parser.read(text)
        entry = Entry(owner=name, id=id, header=header, content=content)
        self._put_in_cache(entry)
        return entry

    def try_load(self, module: Any, parser: HeaderParser, id: FileID) -> Optional[Entry]:
        """Like load(), but None when the entry does not exist."""
        try:
            return self.load(module, parser, id)
        except EntryNotFound:
            return None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _matching_files(self, module: str, pattern: str) -> list[tuple[str, Optional[FileID]]]:
        """Filenames under the root matching pattern and owned by module.

        Files of other modules sharing the prefix (``notes-archive-*`` or
        ``notes-OLD-*`` when listing ``notes``) are skipped. Matching names
        that are not valid entry filenames come back with a None id so bulk
        loads can report them.
        """
        matches = []
        for name in self._driver.list_dir(self._path):
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            try:
                owner, id = parse_entry_filename(name)
            except InvalidIdentifier:
                matches.append((name, None))
                continue
            if owner == module:
                matches.append((name, id))
        return matches

    def ids_for_module(self, module: Any) -> list[FileID]:
        """FileIDs of the stored files of a module, in filename order."""
        name = module_name(module)
        pattern = f"{glob.escape(name)}-*.{STORE_FILE_EXTENSION}"
        return [id for _, id in self._matching_files(name, pattern) if id is not None]

    def load_by_hash(
        self,
        module: Any,
        parser: HeaderParser,
        hash: Union[FileHash, str],
    ) -> Optional[Entry]:
        """
        Load the entry of module whose id contains hash.

        Returns:
            The entry, or None if no file matches

        Raises:
            AmbiguousHash: more than one file matches
        """
        name = module_name(module)
        hashstr = str(hash)
        if not hashstr:
            raise InvalidIdentifier("Empty hash")
        pattern = f"{glob.escape(name)}-*{glob.escape(hashstr)}*.{STORE_FILE_EXTENSION}"
        logger.debug("match(%s)", pattern)

        candidates = [
            (fname, id) for fname, id in self._matching_files(name, pattern)
            if id is not None
        ]
        if not candidates:
            return None
        if len(candidates) > 1:
            raise AmbiguousHash(hashstr, [fname for fname, _ in candidates])

        _, id = candidates[0]
        logger.debug("Loaded ID = '%s'", id)
        return self.try_load(name, parser, id)

    def load_for_module(self, module: Any, parser: HeaderParser) -> LoadResult:
        """
        Load every stored entry of a module.

        A file that cannot be loaded is recorded in the result's errors and
        logged; it never aborts the enumeration.
        """
        name = module_name(module)
        pattern = f"{glob.escape(name)}-*.{STORE_FILE_EXTENSION}"
        result = LoadResult()
        for fname, id in self._matching_files(name, pattern):
            try:
                if id is None:
                    raise InvalidIdentifier(f"Not an entry filename: {fname!r}")
                result.entries.append(self.load(name, parser, id))
            except StoreError as e:
                logger.warning("Skipping %s: %s", fname, e)
                result.errors.append((fname, e))
        return result

    # -------------------------------------------------------------------------
    # Removal and relocation
    # -------------------------------------------------------------------------

    def remove(self, id: FileID) -> None:
        """
        Drop an entry from the cache and delete its backing file.

        An entry that was never persisted has no file; that is not an error.

        Raises:
            EntryNotFound: id is not a cached entry
            IoError: the file exists but could not be removed
        """
        entry = self._cache.pop(id, None)
        if entry is None:
            raise EntryNotFound(f"Entry not in store: {id}")

        path = self.entry_path(entry.owner, id)
        lf = self._files.pop(id, None)
        if lf is None or lf.path != path:
            lf = LazyFile(path, self._driver)
        logger.debug("Removing file NOW: '%s'", path)
        try:
            lf.delete()
        except NotFound:
            logger.debug("No file for %s, entry was never persisted", id)
        else:
            logger.info("Removed %s", path)

    def relocate(self, id: FileID, new_module: Any, remove_old: bool = True) -> str:
        """
        Give an entry a new owning module, moving its file along.

        The FileID is unchanged. Returns the new path.

        Raises:
            IoError: the copy or the removal of the old file failed; once the
                copy exists the entry is owned by new_module either way
        """
        entry = self._resolve(id)
        new_name = module_name(new_module)
        old_path = self.entry_path(entry.owner, id)
        new_path = self.entry_path(new_name, id)
        if self._driver.exists(old_path):
            lf = self._lazy_file(id, old_path)
            try:
                with lf:
                    lf.relocate(new_path, remove_old)
            finally:
                # the copy exists: the entry belongs to the new module now
                if lf.path == new_path:
                    entry.owner = new_name
        entry.owner = new_name
        logger.info("Relocated %s to module %r", id, new_name)
        return new_path

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close any open file handles."""
        for lf in self._files.values():
            lf.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
