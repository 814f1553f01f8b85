"""
Output of entries on the terminal.
"""

import json
import logging
from typing import Callable, Iterable, Optional

import typer

from .types import Entry

logger = logging.getLogger(__name__)

# Extra cells for a row, supplied by the calling module
RowFn = Callable[[Entry], list[str]]


class SimplePrinter:
    """One line per entry; full entry in verbose mode."""

    def __init__(self, verbose: bool = False, debug: bool = False, color: bool = True):
        self.verbose = verbose
        self.debug = debug
        self.color = color

    def _label(self) -> str:
        if self.color:
            return typer.style("[File]", fg=typer.colors.CYAN)
        return "[File]"

    def print_entry(self, entry: Entry) -> None:
        if self.debug:
            logger.debug("%r", entry)
        if self.verbose:
            typer.echo(format_entry(entry))
        else:
            typer.echo(f"{self._label()}: {entry.id}")

    def print_entries(self, entries: Iterable[Entry], row: Optional[RowFn] = None) -> None:
        for entry in entries:
            if row is None:
                self.print_entry(entry)
            else:
                typer.echo(f"{self._label()}: {' '.join(row(entry))}")


class TablePrinter(SimplePrinter):
    """Aligned table: #, Module, ID-Type, ID, then caller columns."""

    TITLES = ["#", "Module", "ID-Type", "ID"]

    def print_entries(
        self,
        entries: Iterable[Entry],
        row: Optional[RowFn] = None,
        extra_titles: Optional[list[str]] = None,
    ) -> None:
        titles = self.TITLES + list(extra_titles or [])
        rows = []
        for i, entry in enumerate(entries, start=1):
            cells = [str(i), entry.owner, str(entry.id.idtype), str(entry.hash)]
            if row is not None:
                cells.extend(row(entry))
            rows.append(cells)

        if not rows:
            logger.debug("Not printing table because there are zero entries")
            return
        logger.debug("Printing %d table entries", len(rows))
        typer.echo(render_table(titles, rows))


def render_table(titles: list[str], rows: list[list[str]]) -> str:
    """Plain-text table with a title rule."""
    ncols = max([len(titles)] + [len(r) for r in rows])
    titles = titles + [""] * (ncols - len(titles))
    rows = [r + [""] * (ncols - len(r)) for r in rows]
    widths = [
        max(len(str(cell)) for cell in col)
        for col in zip(titles, *rows)
    ]

    def line(cells):
        cells = list(cells)
        # no separator in front of trailing empty cells
        while cells and str(cells[-1]) == "":
            cells.pop()
        return " | ".join(str(c).ljust(w) for c, w in zip(cells, widths)).rstrip()

    rule = "-+-".join("-" * w for w in widths)
    return "\n".join([line(titles), rule] + [line(r) for r in rows])


def format_entry(entry: Entry, header: bool = True, content: bool = True) -> str:
    """Human readable entry: id line, JSON header, content."""
    parts = [f"{entry.owner} {entry.id}"]
    if header:
        parts.append(json.dumps(entry.header, indent=2, sort_keys=True, ensure_ascii=False))
    if content and entry.content:
        parts.append(entry.content)
    return "\n".join(parts)
