"""
Header parsers: the codec between stored text and (header, content) pairs.

A stored entry is a frontmatter block followed by the content body::

    ---
    {"tags": ["a"], "url": "http://example.com"}
    ---
    content text

The syntax of the block is owned by the parser. The Store never looks
inside; it only calls read() and write().
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from .errors import ParseError, SchemaError, SerializeError
from .types import HeaderData, validate_header_data

FRAME = "---"


# ---------------------------------------------------------------------------
# Header schemas
# ---------------------------------------------------------------------------

class HeaderSpec:
    """Structural constraint on a header tree."""

    def validate(self, data: Any, path: str = "") -> None:
        raise NotImplementedError


class _Scalar(HeaderSpec):
    kind: tuple = ()
    label = ""

    def validate(self, data: Any, path: str = "") -> None:
        # bool is an int subclass; keep them apart
        if isinstance(data, bool) and bool not in self.kind:
            ok = False
        else:
            ok = isinstance(data, self.kind)
        if not ok:
            raise SchemaError(
                f"Expected {self.label} at {path or '<root>'}, got {type(data).__name__}"
            )

    def __repr__(self) -> str:
        return self.label.capitalize()


class Text(_Scalar):
    kind = (str,)
    label = "text"


class Integer(_Scalar):
    kind = (int,)
    label = "integer"


class Bool(_Scalar):
    kind = (bool,)
    label = "bool"


class Null(_Scalar):
    kind = (type(None),)
    label = "null"


class AnyValue(HeaderSpec):
    """Accepts any header tree."""

    def validate(self, data: Any, path: str = "") -> None:
        validate_header_data(data, path)


@dataclass
class Array(HeaderSpec):
    items: HeaderSpec = field(default_factory=AnyValue)

    def validate(self, data: Any, path: str = "") -> None:
        if not isinstance(data, list):
            raise SchemaError(f"Expected array at {path or '<root>'}, got {type(data).__name__}")
        for i, item in enumerate(data):
            self.items.validate(item, f"{path}[{i}]")


@dataclass
class Key:
    name: str
    spec: HeaderSpec = field(default_factory=AnyValue)
    optional: bool = False


@dataclass
class Map(HeaderSpec):
    """Mapping with known keys. Unknown keys are allowed."""
    keys: list[Key] = field(default_factory=list)

    def validate(self, data: Any, path: str = "") -> None:
        if not isinstance(data, dict):
            raise SchemaError(f"Expected map at {path or '<root>'}, got {type(data).__name__}")
        for key in self.keys:
            sub = f"{path}.{key.name}" if path else key.name
            if key.name not in data:
                if key.optional:
                    continue
                raise SchemaError(f"Missing required header field: {sub}")
            key.spec.validate(data[key.name], sub)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

class HeaderParser(ABC):
    """
    Encode/decode contract between text and (header, content).

    read() must be the left inverse of write(): for every pair the parser
    accepts, ``read(write(h, c)) == (h, c)``.
    """

    def __init__(self, spec: Optional[HeaderSpec] = None):
        self.spec = spec

    def check(self, header: HeaderData) -> None:
        """Validate a header against the tree type and this parser's spec."""
        validate_header_data(header)
        if self.spec is not None:
            self.spec.validate(header)

    def read(self, text: str) -> tuple[HeaderData, str]:
        """Split stored text into header tree and content.

        Raises:
            ParseError: text is not framed or the header block is malformed
            SchemaError: header does not satisfy the parser's HeaderSpec
        """
        block, content = split_frontmatter(text)
        header = self.decode_header(block)
        self.check(header)
        return header, content

    def write(self, header: HeaderData, content: str) -> str:
        """Render header and content to stored text.

        Raises:
            SerializeError: header or content could not be rendered as UTF-8
            SchemaError: header does not satisfy the parser's HeaderSpec
        """
        if not isinstance(content, str):
            raise SerializeError(f"Content must be text, got {type(content).__name__}")
        self.check(header)
        block = self.encode_header(header)
        text = f"{FRAME}\n{block}\n{FRAME}\n{content}"
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise SerializeError(f"Entry is not encodable as UTF-8: {e}") from e
        return text

    @abstractmethod
    def decode_header(self, block: str) -> HeaderData: ...

    @abstractmethod
    def encode_header(self, header: HeaderData) -> str: ...


def split_frontmatter(text: str) -> tuple[str, str]:
    """Split ``---\\n<block>\\n---\\n<content>`` into block and content."""
    opening = FRAME + "\n"
    if not text.startswith(opening):
        raise ParseError("Missing header frame at start of entry")
    rest = text[len(opening):]
    closing = "\n" + FRAME + "\n"
    idx = rest.find(closing)
    if idx < 0:
        # Header frame at end of text with no trailing newline
        if rest.endswith("\n" + FRAME):
            return rest[:-len(FRAME) - 1], ""
        raise ParseError("Unterminated header frame")
    return rest[:idx], rest[idx + len(closing):]


class JsonHeaderParser(HeaderParser):
    """Header block as indented JSON with sorted keys."""

    def decode_header(self, block: str) -> HeaderData:
        try:
            return json.loads(block)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON header: {e}") from e

    def encode_header(self, header: HeaderData) -> str:
        try:
            return json.dumps(header, indent=2, sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SerializeError(f"Header is not JSON serializable: {e}") from e


class YamlHeaderParser(HeaderParser):
    """Header block as YAML frontmatter."""

    def decode_header(self, block: str) -> HeaderData:
        try:
            return yaml.safe_load(block)
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML header: {e}") from e

    def encode_header(self, header: HeaderData) -> str:
        try:
            dumped = yaml.safe_dump(
                header,
                default_flow_style=False,
                sort_keys=True,
                allow_unicode=True,
                width=2**31 - 1,
            )
        except yaml.YAMLError as e:
            raise SerializeError(f"Header is not YAML serializable: {e}") from e
        return dumped.rstrip("\n")


PARSERS = {
    "json": JsonHeaderParser,
    "yaml": YamlHeaderParser,
}


def get_parser(name: str, spec: Optional[HeaderSpec] = None) -> HeaderParser:
    """Look up a parser by name ("json" or "yaml")."""
    try:
        return PARSERS[name](spec)
    except KeyError:
        raise ValueError(f"Unknown parser: {name!r}. Available: {sorted(PARSERS)}") from None
