"""
Bookmarks: URLs with tags.

Header of a bookmark entry::

    {"url": "https://example.com/", "tags": ["a", "b"]}
"""

import logging
import webbrowser
from typing import Callable, Iterable, Optional
from urllib.parse import urlparse

from ..errors import StoreError
from ..filters import (
    Filter,
    HeaderFieldGrepFilter,
    IdFilter,
    TagFilter,
    all_of,
    any_of,
)
from ..parser import Array, JsonHeaderParser, Key, Map, Text
from ..types import Entry
from . import Module

logger = logging.getLogger(__name__)

URL_KEY = "url"
TAGS_KEY = "tags"

BOOKMARK_SPEC = Map([
    Key(URL_KEY, Text()),
    Key(TAGS_KEY, Array(Text()), optional=True),
])

_URL_SCHEMES = frozenset({"http", "https", "ftp", "file"})


def is_url(url: str) -> bool:
    """True for absolute http(s)/ftp/file URLs."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in _URL_SCHEMES:
        return False
    return bool(parsed.netloc) or parsed.scheme == "file"


def parse_tags(tags: Optional[str]) -> list[str]:
    """Split a comma separated tag argument."""
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


def build_header(url: str, tags: list[str]) -> dict:
    return {URL_KEY: url, TAGS_KEY: list(tags)}


def get_url(entry: Entry) -> Optional[str]:
    header = entry.header
    if isinstance(header, dict) and isinstance(header.get(URL_KEY), str):
        return header[URL_KEY]
    return None


def get_tags(entry: Entry) -> list[str]:
    header = entry.header
    if not isinstance(header, dict):
        return []
    tags = header.get(TAGS_KEY)
    if not isinstance(tags, list):
        return []
    return [t for t in tags if isinstance(t, str)]


class BookmarkModule(Module):
    """Add, list, open, remove and re-tag bookmarks."""

    name = "bookmark"

    def __init__(self, store, runtime=None):
        super().__init__(store, runtime)
        self.parser = JsonHeaderParser(BOOKMARK_SPEC)

    # -- Selection --

    def narrowing_filter(self, id=None, match=None, tags=None) -> Filter:
        """AND chain: absent arguments pass everything (list, open)."""
        return all_of([
            IdFilter(id, if_absent=True),
            HeaderFieldGrepFilter(URL_KEY, match, if_absent=True),
            TagFilter(tags, if_absent=True),
        ])

    def selecting_filter(self, id=None, match=None, tags=None) -> Filter:
        """OR chain: absent arguments select nothing (remove, retag)."""
        return any_of([
            IdFilter(id, if_absent=False),
            HeaderFieldGrepFilter(URL_KEY, match, if_absent=False),
            TagFilter(tags, if_absent=False),
        ])

    def entries(self) -> list[Entry]:
        """All bookmarks; unreadable files are logged and skipped."""
        result = self.store.load_for_module(self, self.parser)
        for fname, err in result.errors:
            logger.error("Could not load bookmark %s: %s", fname, err)
        return list(result)

    def select(self, flt: Filter) -> list[Entry]:
        return flt.filter(self.entries())

    # -- Commands --

    def add(self, url: str, tags: Iterable[str] = ()) -> Entry:
        """
        Store a new bookmark.

        Raises:
            ValueError: invalid URL, or URL already stored
        """
        if not is_url(url):
            raise ValueError(f"Url '{url}' is not a valid URL. Will not store.")
        if any(get_url(e) == url for e in self.entries()):
            raise ValueError(f"URL '{url}' seems to be in the store already")

        header = build_header(url, list(tags))
        logger.debug("Building header with url=%r tags=%r", url, header[TAGS_KEY])
        id = self.store.new_entry_with_header(self, header)
        entry = self.store.get(id)
        self.store.persist(self.parser, entry)
        logger.info("Created bookmark %s", id)
        return entry

    def list_entries(self, id=None, match=None, tags=None) -> list[Entry]:
        return self.select(self.narrowing_filter(id, match, tags))

    def open(
        self,
        id=None,
        match=None,
        tags=None,
        opener: Optional[Callable[[str], bool]] = None,
    ) -> tuple[int, int]:
        """Open matching bookmarks in the browser. Returns (succeeded, failed)."""
        if opener is None:
            opener = webbrowser.open
        succeeded = failed = 0
        for entry in self.select(self.narrowing_filter(id, match, tags)):
            url = get_url(entry)
            if url is not None and opener(url):
                logger.info("open(%s)", url)
                succeeded += 1
            else:
                logger.info("could not open(%s)", url)
                failed += 1
        return succeeded, failed

    def remove(self, id=None, match=None, tags=None) -> tuple[int, int]:
        """Remove selected bookmarks. Returns (removed, failed)."""
        removed = failed = 0
        for entry in self.select(self.selecting_filter(id, match, tags)):
            try:
                self.store.remove(entry.id)
                removed += 1
            except StoreError as e:
                logger.error("Removing %s failed: %s", entry.id, e)
                failed += 1
        logger.info("Removing succeeded for %d files", removed)
        logger.info("Removing failed for %d files", failed)
        return removed, failed

    def _alter_tags(
        self,
        new_tags: Callable[[list[str], list[str]], list[str]],
        tags: Iterable[str],
        id=None,
        match=None,
        with_tags=None,
    ) -> list[Entry]:
        cli_tags = list(tags)
        changed = []
        for entry in self.select(self.selecting_filter(id, match, with_tags)):
            old = get_tags(entry)
            updated = new_tags(old, cli_tags)
            logger.debug("Tags of %s: %r -> %r", entry.id, old, updated)
            entry.header = {**entry.header, TAGS_KEY: updated}
            self.store.persist(self.parser, entry)
            changed.append(entry)
        return changed

    def add_tags(self, tags: Iterable[str], id=None, match=None, with_tags=None) -> list[Entry]:
        return self._alter_tags(
            lambda old, cli: list(dict.fromkeys([*old, *cli])),
            tags, id, match, with_tags,
        )

    def rm_tags(self, tags: Iterable[str], id=None, match=None, with_tags=None) -> list[Entry]:
        return self._alter_tags(
            lambda old, cli: [t for t in old if t not in cli],
            tags, id, match, with_tags,
        )

    def set_tags(self, tags: Iterable[str], id=None, match=None, with_tags=None) -> list[Entry]:
        return self._alter_tags(
            lambda old, cli: list(cli),
            tags, id, match, with_tags,
        )
