"""
Composable predicates over entries.

Filters are built from optional command-line arguments. Each concrete filter
takes the raw argument (None when the user did not give it) and an
``if_absent`` result decided by the call site:

* listing commands narrow with an AND chain, so an absent argument must
  pass everything: ``if_absent=True``
* destructive commands select with an OR chain, so an absent argument must
  select nothing: ``if_absent=False``
"""

import re
from functools import reduce
from typing import Callable, Iterable, Optional

from .types import Entry, header_field


class Filter:
    """Predicate over an Entry, composable with ``&``, ``|`` and ``~``."""

    def matches(self, entry: Entry) -> bool:
        raise NotImplementedError

    def __call__(self, entry: Entry) -> bool:
        return self.matches(entry)

    def and_(self, other: "Filter") -> "Filter":
        return AndFilter(self, other)

    def or_(self, other: "Filter") -> "Filter":
        return OrFilter(self, other)

    def not_(self) -> "Filter":
        return NotFilter(self)

    __and__ = and_
    __or__ = or_
    __invert__ = not_

    def filter(self, entries: Iterable[Entry]) -> list[Entry]:
        """Entries for which this filter holds, in order."""
        return [e for e in entries if self.matches(e)]


class _Const(Filter):
    def __init__(self, value: bool):
        self.value = value

    def matches(self, entry: Entry) -> bool:
        return self.value

    def __repr__(self) -> str:
        return "ALWAYS" if self.value else "NEVER"


ALWAYS = _Const(True)
NEVER = _Const(False)


class AndFilter(Filter):
    def __init__(self, left: Filter, right: Filter):
        self.left = left
        self.right = right

    def matches(self, entry: Entry) -> bool:
        return self.left.matches(entry) and self.right.matches(entry)


class OrFilter(Filter):
    def __init__(self, left: Filter, right: Filter):
        self.left = left
        self.right = right

    def matches(self, entry: Entry) -> bool:
        return self.left.matches(entry) or self.right.matches(entry)


class NotFilter(Filter):
    def __init__(self, inner: Filter):
        self.inner = inner

    def matches(self, entry: Entry) -> bool:
        return not self.inner.matches(entry)


class FunctionFilter(Filter):
    """Adapt a plain callable to the Filter interface."""

    def __init__(self, fn: Callable[[Entry], bool]):
        self.fn = fn

    def matches(self, entry: Entry) -> bool:
        return bool(self.fn(entry))


def all_of(filters: Iterable[Filter]) -> Filter:
    """AND of filters; ALWAYS for none."""
    return reduce(AndFilter, filters, ALWAYS)


def any_of(filters: Iterable[Filter]) -> Filter:
    """OR of filters; NEVER for none."""
    return reduce(OrFilter, filters, NEVER)


class ArgumentFilter(Filter):
    """A filter driven by an optional argument."""

    def __init__(self, value: Optional[str], if_absent: bool):
        self.value = value
        self.if_absent = if_absent

    def matches(self, entry: Entry) -> bool:
        if self.value is None:
            return self.if_absent
        return self.check(entry)

    def check(self, entry: Entry) -> bool:
        raise NotImplementedError


def _split_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class IdFilter(ArgumentFilter):
    """
    Match entries by id.

    The argument is a comma separated list; each item is a full id
    (``UUID-<hash>``) or a prefix of the hash.
    """

    def check(self, entry: Entry) -> bool:
        full = str(entry.id)
        hash = str(entry.hash)
        return any(
            v == full or hash.startswith(v)
            for v in _split_list(self.value)
        )


def _tags_of(entry: Entry, key: str) -> list[str]:
    tags = header_field(entry.header, key)
    if not isinstance(tags, list):
        return []
    return [t for t in tags if isinstance(t, str)]


class TagFilter(ArgumentFilter):
    """Match entries carrying any of a comma separated list of tags."""

    def __init__(self, value: Optional[str], if_absent: bool, header_key: str = "tags"):
        super().__init__(value, if_absent)
        self.header_key = header_key

    def check(self, entry: Entry) -> bool:
        wanted = set(_split_list(self.value))
        return any(t in wanted for t in _tags_of(entry, self.header_key))


def _field_values(entry: Entry, field: str) -> list[str]:
    value = header_field(entry.header, field)
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value if not isinstance(v, (list, dict))]
    if isinstance(value, dict):
        return []
    if isinstance(value, bool):
        return [str(value).lower()]
    return [str(value)]


class HeaderFieldGrepFilter(ArgumentFilter):
    """Regex search against a dotted header field (any list item may match)."""

    def __init__(self, field: str, pattern: Optional[str], if_absent: bool):
        super().__init__(pattern, if_absent)
        self.field = field
        self._regex = re.compile(pattern) if pattern is not None else None

    def check(self, entry: Entry) -> bool:
        return any(self._regex.search(v) for v in _field_values(entry, self.field))


class HeaderFieldEqualsFilter(ArgumentFilter):
    """Exact match of a dotted header field (any list item may match)."""

    def __init__(self, field: str, value: Optional[str], if_absent: bool):
        super().__init__(value, if_absent)
        self.field = field

    def check(self, entry: Entry) -> bool:
        return self.value in _field_values(entry, self.field)


class ContentGrepFilter(ArgumentFilter):
    """Regex search in the entry content."""

    def __init__(self, pattern: Optional[str], if_absent: bool):
        super().__init__(pattern, if_absent)
        self._regex = re.compile(pattern, re.MULTILINE) if pattern is not None else None

    def check(self, entry: Entry) -> bool:
        return bool(self._regex.search(entry.content or ""))


def parse_field_expression(expr: str) -> tuple[str, str]:
    """Split ``header.field=value`` into (field, value)."""
    if "=" not in expr:
        raise ValueError(f"Invalid field expression {expr!r}, use field=value")
    field, value = expr.split("=", 1)
    field = field.strip()
    if not field:
        raise ValueError(f"Missing field name in {expr!r}")
    return field, value


def field_grep_filter(expr: Optional[str], if_absent: bool) -> Filter:
    """HeaderFieldGrepFilter from an optional ``field=pattern`` argument."""
    if expr is None:
        return HeaderFieldGrepFilter("", None, if_absent)
    field, pattern = parse_field_expression(expr)
    return HeaderFieldGrepFilter(field, pattern, if_absent)


def field_equals_filter(expr: Optional[str], if_absent: bool) -> Filter:
    """HeaderFieldEqualsFilter from an optional ``field=value`` argument."""
    if expr is None:
        return HeaderFieldEqualsFilter("", None, if_absent)
    field, value = parse_field_expression(expr)
    return HeaderFieldEqualsFilter(field, value, if_absent)
