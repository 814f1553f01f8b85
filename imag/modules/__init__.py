"""
Client modules built on the store.

A module owns the entries whose filenames start with its name.
"""

from typing import TYPE_CHECKING, Optional

from ..store import Store

if TYPE_CHECKING:
    from ..runtime import Runtime


class Module:
    """Base class for store client modules."""

    name: str = ""

    def __init__(self, store: Store, runtime: Optional["Runtime"] = None):
        self.store = store
        self.runtime = runtime

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"
