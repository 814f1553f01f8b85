"""
imag - personal flat-file document store.

Entries (a header tree plus text content) are stored one per file under a
store root and addressed by FileID. Quick start::

    from imag import Store, JsonHeaderParser

    store = Store("/tmp/store")
    parser = JsonHeaderParser()
    id = store.new_entry_with_header("notes", {"title": "hello"})
    store.persist(parser, id)
    entry = store.load("notes", parser, id)
"""

from .driver import Driver, IoDriver, MemoryDriver
from .errors import (
    AmbiguousHash,
    EntryNotFound,
    FileNotCreated,
    FileNotFound,
    InvalidIdentifier,
    IoError,
    NotFound,
    ParseError,
    SchemaError,
    SerializeError,
    StoreError,
)
from .filters import (
    ALWAYS,
    NEVER,
    ContentGrepFilter,
    Filter,
    HeaderFieldEqualsFilter,
    HeaderFieldGrepFilter,
    IdFilter,
    TagFilter,
)
from .lazyfile import LazyFile
from .parser import HeaderParser, HeaderSpec, JsonHeaderParser, YamlHeaderParser
from .store import LoadResult, Store
from .types import Entry, FileHash, FileID, FileIDType, HeaderData

__version__ = "0.1.0"

__all__ = [
    "Store",
    "LoadResult",
    "Entry",
    "FileID",
    "FileIDType",
    "FileHash",
    "HeaderData",
    "Driver",
    "IoDriver",
    "MemoryDriver",
    "LazyFile",
    "HeaderParser",
    "HeaderSpec",
    "JsonHeaderParser",
    "YamlHeaderParser",
    "Filter",
    "ALWAYS",
    "NEVER",
    "IdFilter",
    "TagFilter",
    "HeaderFieldGrepFilter",
    "HeaderFieldEqualsFilter",
    "ContentGrepFilter",
    "StoreError",
    "IoError",
    "NotFound",
    "EntryNotFound",
    "FileNotFound",
    "FileNotCreated",
    "ParseError",
    "SchemaError",
    "SerializeError",
    "InvalidIdentifier",
    "AmbiguousHash",
]
