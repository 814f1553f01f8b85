"""
Data types for the imag store.

An entry is addressed by a FileID: an addressing scheme (FileIDType) plus an
opaque hash. On disk an entry lives at ``<module>-<TYPE>-<hash>.imag``.
"""

import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .errors import InvalidIdentifier, SchemaError


# Extension of every stored entry file
STORE_FILE_EXTENSION = "imag"

# Header trees: null, bool, int, str, list, str-keyed dict
HeaderData = Union[None, bool, int, str, list, dict]


class FileIDType(Enum):
    """Addressing scheme of a FileID, encoded in the filename."""

    UUID = "UUID"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, s: str) -> "FileIDType":
        try:
            return cls(s)
        except ValueError:
            raise InvalidIdentifier(f"Unknown id type: {s!r}") from None


# Grammar of the hash part, per id type
_HASH_PATTERNS = {
    FileIDType.UUID: r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
}

_ID_RE = re.compile(
    r"^(?P<type>[A-Z]+)-(?P<hash>.+)$"
)

_FILE_SUFFIX = "." + STORE_FILE_EXTENSION


@dataclass(frozen=True)
class FileHash:
    """Opaque identity tag of an entry. Equality is string equality."""

    value: str

    def __str__(self) -> str:
        return self.value

    @classmethod
    def new_uuid(cls) -> "FileHash":
        return cls(str(uuid.uuid4()))


@dataclass(frozen=True)
class FileID:
    """Identifier of a stored entry: (id type, hash)."""

    idtype: FileIDType
    hash: FileHash

    def __post_init__(self):
        # every FileID must survive parse(str(id))
        if not re.fullmatch(_HASH_PATTERNS[self.idtype], str(self.hash)):
            raise InvalidIdentifier(f"Invalid {self.idtype} hash: {str(self.hash)!r}")

    def __str__(self) -> str:
        return f"{self.idtype}-{self.hash}"

    @classmethod
    def new(cls, idtype: FileIDType, hash: Union[FileHash, str]) -> "FileID":
        """
        Raises:
            InvalidIdentifier: if hash does not fit the grammar of idtype
        """
        if not isinstance(hash, FileHash):
            hash = FileHash(hash)
        return cls(idtype, hash)

    @classmethod
    def generate(cls) -> "FileID":
        """Allocate a fresh random identifier."""
        return cls(FileIDType.UUID, FileHash.new_uuid())

    @classmethod
    def parse(cls, s: str) -> "FileID":
        """Parse the text form of an id, or a storage filename containing one.

        Accepts ``UUID-<hash>`` as well as ``[dir/]<module>-UUID-<hash>.imag``.

        Raises:
            InvalidIdentifier: if no known id type grammar matches
        """
        name = s.rsplit("/", 1)[-1]
        if name.endswith(_FILE_SUFFIX):
            return parse_entry_filename(name)[1]
        return cls._parse_id(name)

    @classmethod
    def _parse_id(cls, text: str) -> "FileID":
        m = _ID_RE.match(text)
        if m is None:
            raise InvalidIdentifier(f"Not a file id: {text!r}")
        return cls.new(FileIDType.parse(m.group("type")), m.group("hash"))


def module_name(module: Any) -> str:
    """Name of a module given as a module object or a plain string."""
    if isinstance(module, str):
        return module
    return module.name


def validate_header_data(value: Any, path: str = "") -> None:
    """Check that a value is a header tree.

    Raises:
        SchemaError: naming the dotted path of the first bad node
    """
    where = path or "<root>"
    if value is None or isinstance(value, (bool, int, str)):
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            validate_header_data(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SchemaError(f"Non-string key {key!r} at {where}")
            validate_header_data(item, f"{path}.{key}" if path else key)
        return
    raise SchemaError(f"Unsupported header value {type(value).__name__} at {where}")


def header_field(header: HeaderData, field_path: str) -> Any:
    """Look up a dotted field path (``a.b.c``) in a header tree.

    Returns None when any step is missing or not a mapping.
    """
    node = header
    for part in field_path.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


@dataclass(eq=False)
class Entry:
    """
    One stored document.

    Entries are shared: the Store caches one Entry per FileID and hands out
    that same object, so header/content edits are seen by every holder.
    """
    owner: str
    id: FileID
    header: HeaderData = None
    content: str = ""

    def __setattr__(self, name, value):
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Entry id is fixed after creation")
        super().__setattr__(name, value)

    @property
    def hash(self) -> FileHash:
        return self.id.hash

    def contents(self) -> tuple[HeaderData, str]:
        """Header and content, the pair a parser encodes."""
        return self.header, self.content

    def __str__(self) -> str:
        return f"{self.owner}-{self.id}"


def entry_filename(module: str, id: FileID) -> str:
    """Storage filename of an entry: ``<module>-<id>.imag``."""
    return f"{module}-{id}.{STORE_FILE_EXTENSION}"


def parse_entry_filename(name: str) -> tuple[str, FileID]:
    """Split a storage filename into owning module name and FileID.

    The id is the first hyphen-separated tail that is a valid FileID, so
    module names may themselves contain hyphens and upper-case segments
    (``my-NOTES-UUID-<hash>.imag`` belongs to ``my-NOTES``).

    Raises:
        InvalidIdentifier: if the name is not a storage filename
    """
    if name.endswith(_FILE_SUFFIX):
        stem = name[:-len(_FILE_SUFFIX)]
        cut = stem.find("-", 1)
        while cut != -1:
            try:
                return stem[:cut], FileID._parse_id(stem[cut + 1:])
            except InvalidIdentifier:
                cut = stem.find("-", cut + 1)
    raise InvalidIdentifier(f"Not an entry filename: {name!r}")
