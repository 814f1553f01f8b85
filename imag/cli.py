"""
CLI interface for the imag store.

Usage:
    imag bookmark add https://example.com --tags a,b
    imag bookmark list --tags a
    imag store create --module notes --content "hello"
    imag store get UUID-0b0e... --module notes
"""

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .errors import AmbiguousHash, InvalidIdentifier, NotFound, StoreError, is_not_found
from .filters import ContentGrepFilter, IdFilter, all_of, field_equals_filter, field_grep_filter
from .logging_config import configure_logging
from .modules.bookmark import BookmarkModule, get_tags, get_url, parse_tags
from .parser import HeaderParser, get_parser
from .printer import SimplePrinter, TablePrinter, format_entry
from .runtime import Runtime
from .store import Store
from .types import Entry, FileID


# Global state for CLI options
_options: dict = {
    "verbose": False,
    "debug": False,
    "color": True,
    "rtp": None,
    "store": None,
    "config": None,
    "editor": None,
    "runtime": None,
}


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"imag {version('imag-store')}")
        raise typer.Exit()


app = typer.Typer(
    name="imag",
    help="Personal information management on a flat-file store.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
store_app = typer.Typer(help="Generic entry operations.", no_args_is_help=True)
bookmark_app = typer.Typer(help="Bookmark URLs with tags.", no_args_is_help=True)
app.add_typer(store_app, name="store")
app.add_typer(bookmark_app, name="bookmark")


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enables verbosity",
    )] = False,
    debug: Annotated[bool, typer.Option(
        "--debug",
        help="Enables debugging output",
    )] = False,
    no_color: Annotated[bool, typer.Option(
        "--no-color",
        help="Disable coloured output",
    )] = False,
    config: Annotated[Optional[Path], typer.Option(
        "--config",
        help="Path to alternative config file",
    )] = None,
    rtp: Annotated[Optional[Path], typer.Option(
        "--rtp",
        envvar="IMAG_RTP",
        help="Alternative runtimepath",
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="IMAG_STORE_PATH",
        help="Alternative storepath. Must be a full path, can be outside of the RTP",
    )] = None,
    editor: Annotated[Optional[str], typer.Option(
        "--editor",
        help="Set editor",
    )] = None,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
):
    """Personal information management on a flat-file store."""
    _options.update(
        verbose=verbose,
        debug=debug,
        color=not no_color,
        rtp=rtp,
        store=store,
        config=config,
        editor=editor,
    )
    configure_logging(debug=debug, verbose=verbose, color=not no_color)
    ctx.call_on_close(_close_runtime)


def _get_runtime() -> Runtime:
    """Build the runtime from global options, exiting cleanly on failure."""
    try:
        rt = Runtime(
            rtp=_options["rtp"],
            store_path=_options["store"],
            config_file=_options["config"],
            editor=_options["editor"],
            verbose=_options["verbose"],
            debug=_options["debug"],
            ops_log=True,
        )
    except (StoreError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    _options["runtime"] = rt
    if rt.verbose and not _options["verbose"]:
        # verbosity = true in the config file
        configure_logging(debug=_options["debug"], verbose=True, color=_options["color"])
    return rt


def _close_runtime():
    """Close the runtime of the finished command, detaching its ops log."""
    rt = _options["runtime"]
    _options["runtime"] = None
    if rt is not None:
        rt.close()


def _fail(message: str):
    typer.echo(message, err=True)
    raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

ModuleOption = Annotated[
    str,
    typer.Option(
        "--module", "-m",
        help="Owning module of the entry",
    )
]

ParserOption = Annotated[
    str,
    typer.Option(
        "--parser", "-p",
        help="Header syntax: json or yaml",
    )
]

HeaderFieldsOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--header", "-H",
        help="Set a header field as 'header.field=value', multiple allowed",
    )
]


def _parse_header_value(raw: str):
    """JSON scalars and lists are taken as such; anything else is text."""
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(value, float) or isinstance(value, dict):
        return raw
    return value


def _build_header(fields: Optional[list[str]], base=None) -> Optional[dict]:
    """Nested header dict from ``a.b=value`` assignments."""
    if not fields:
        return base
    header = dict(base) if isinstance(base, dict) else {}
    for item in fields:
        if "=" not in item:
            _fail(f"Error: Invalid header field '{item}'. Use header.field=value")
        path, raw = item.split("=", 1)
        keys = [k for k in path.split(".") if k]
        if not keys:
            _fail(f"Error: Missing field name in '{item}'")
        node = header
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
            child = dict(child)
            node[key] = child
            node = child
        node[keys[-1]] = _parse_header_value(raw)
    return header


def _read_content(content: Optional[str], content_from: Optional[str]) -> str:
    if content is not None and content_from is not None:
        _fail("Error: Provide --content or --content-from, not both")
    if content_from == "-":
        return sys.stdin.read()
    if content_from is not None:
        return Path(content_from).read_text(encoding="utf-8")
    return content or ""


def _resolve_entry(store: Store, module: str, parser: HeaderParser, ident: str) -> Entry:
    """Load an entry by full id, or by a fragment of its hash."""
    try:
        id = FileID.parse(ident)
    except InvalidIdentifier:
        try:
            entry = store.load_by_hash(module, parser, ident)
        except AmbiguousHash as e:
            _fail(f"Error: {e}")
        if entry is None:
            _fail(f"Not found: {ident}")
        return entry
    try:
        return store.load(module, parser, id)
    except NotFound:
        _fail(f"Not found: {ident}")


def _parser_for(name: str) -> HeaderParser:
    try:
        return get_parser(name)
    except ValueError as e:
        _fail(f"Error: {e}")


# -----------------------------------------------------------------------------
# Store commands
# -----------------------------------------------------------------------------

@store_app.command("create")
def store_create(
    module: ModuleOption = "store",
    content: Annotated[Optional[str], typer.Option(
        "--content", "-c", help="Content for the entry",
    )] = None,
    content_from: Annotated[Optional[str], typer.Option(
        "--content-from", "-f", help="Read content from this file ('-' for stdin)",
    )] = None,
    header: HeaderFieldsOption = None,
    parser: ParserOption = "json",
):
    """Create an entry and print its id."""
    p = _parser_for(parser)
    rt = _get_runtime()
    hdr = _build_header(header, {})
    body = _read_content(content, content_from)
    id = rt.store.new_entry_with_header_and_content(module, hdr, body)
    rt.store.persist(p, id)
    typer.echo(str(id))


@store_app.command("get")
def store_get(
    id: Annotated[str, typer.Argument(help="Entry id or hash fragment")],
    module: ModuleOption = "store",
    header: Annotated[bool, typer.Option("--header", "-h", help="Print header only")] = False,
    content: Annotated[bool, typer.Option("--content", "-c", help="Print content only")] = False,
    raw: Annotated[bool, typer.Option("--raw", "-r", help="Print entry as stored")] = False,
    parser: ParserOption = "json",
):
    """Print an entry (fails if it does not exist)."""
    p = _parser_for(parser)
    rt = _get_runtime()
    entry = _resolve_entry(rt.store, module, p, id)
    if raw:
        typer.echo(p.write(entry.header, entry.content), nl=False)
    elif header and not content:
        typer.echo(json.dumps(entry.header, indent=2, sort_keys=True, ensure_ascii=False))
    elif content and not header:
        typer.echo(entry.content, nl=False)
    else:
        typer.echo(format_entry(entry))


@store_app.command("list")
def store_list(
    module: ModuleOption = "store",
    id: Annotated[Optional[str], typer.Option("--id", "-i", help="Only these ids (comma separated)")] = None,
    where: Annotated[Optional[str], typer.Option(
        "--where", "-w", help="Header field equals value: 'header.field=foo'",
    )] = None,
    grep: Annotated[Optional[str], typer.Option(
        "--grep", "-g", help="Header field matches regex: 'header.field=[a-z]*'",
    )] = None,
    content_grep: Annotated[Optional[str], typer.Option(
        "--content-grep", help="Content matches regex",
    )] = None,
    parser: ParserOption = "json",
):
    """List the entries of a module as a table."""
    p = _parser_for(parser)
    rt = _get_runtime()
    try:
        flt = all_of([
            IdFilter(id, if_absent=True),
            field_equals_filter(where, if_absent=True),
            field_grep_filter(grep, if_absent=True),
            ContentGrepFilter(content_grep, if_absent=True),
        ])
    except ValueError as e:
        _fail(f"Error: {e}")

    result = rt.store.load_for_module(module, p)
    for fname, err in result.errors:
        typer.echo(f"Warning: could not load {fname}: {err}", err=True)
    TablePrinter(rt.verbose, rt.debug, _options["color"]).print_entries(flt.filter(result))


@store_app.command("update")
def store_update(
    id: Annotated[str, typer.Argument(help="Entry id or hash fragment")],
    module: ModuleOption = "store",
    content: Annotated[Optional[str], typer.Option(
        "--content", "-c", help="New content",
    )] = None,
    content_from: Annotated[Optional[str], typer.Option(
        "--content-from", "-f", help="Read new content from this file ('-' for stdin)",
    )] = None,
    header: HeaderFieldsOption = None,
    parser: ParserOption = "json",
):
    """Change header fields and/or content of an entry."""
    p = _parser_for(parser)
    rt = _get_runtime()
    entry = _resolve_entry(rt.store, module, p, id)
    if header:
        entry.header = _build_header(header, entry.header)
    if content is not None or content_from is not None:
        entry.content = _read_content(content, content_from)
    rt.store.persist(p, entry)
    typer.echo(str(entry.id))


@store_app.command("edit")
def store_edit(
    id: Annotated[str, typer.Argument(help="Entry id or hash fragment")],
    module: ModuleOption = "store",
    parser: ParserOption = "json",
):
    """Edit an entry (header and content) in the editor."""
    p = _parser_for(parser)
    rt = _get_runtime()
    entry = _resolve_entry(rt.store, module, p, id)
    try:
        edited = rt.edit_text(p.write(entry.header, entry.content))
    except RuntimeError as e:
        _fail(f"Error: {e}")
    entry.header, entry.content = p.read(edited)
    rt.store.persist(p, entry)
    typer.echo(str(entry.id))


@store_app.command("delete")
def store_delete(
    id: Annotated[str, typer.Argument(help="Entry id or hash fragment")],
    module: ModuleOption = "store",
    parser: ParserOption = "json",
):
    """Delete an entry from the store."""
    p = _parser_for(parser)
    rt = _get_runtime()
    entry = _resolve_entry(rt.store, module, p, id)
    rt.store.remove(entry.id)
    typer.echo(f"Deleted {entry.id}")


# -----------------------------------------------------------------------------
# Bookmark commands
# -----------------------------------------------------------------------------

IdOption = Annotated[Optional[str], typer.Option("--id", "-i", help="Bookmark ids (comma separated)")]
MatchOption = Annotated[Optional[str], typer.Option("--match", "-m", help="URL matches regex")]
TagsOption = Annotated[Optional[str], typer.Option("--tags", "-t", help="Tags (comma separated)")]
WithIdOption = Annotated[Optional[str], typer.Option("--with-id", help="Select by id")]
WithMatchOption = Annotated[Optional[str], typer.Option("--with-match", help="Select by URL regex")]
WithTagsOption = Annotated[Optional[str], typer.Option("--with-tags", help="Select by tags")]


def _bookmarks() -> BookmarkModule:
    rt = _get_runtime()
    return BookmarkModule(rt.store, rt)


def _bookmark_row(entry: Entry) -> list[str]:
    return [get_url(entry) or "Parser error", ", ".join(get_tags(entry))]


@bookmark_app.command("add")
def bookmark_add(
    url: Annotated[str, typer.Argument(help="URL to store")],
    tags: TagsOption = None,
):
    """Add a bookmark."""
    bm = _bookmarks()
    try:
        entry = bm.add(url, parse_tags(tags))
    except ValueError as e:
        _fail(f"Error: {e}")
    typer.echo(str(entry.id))


@bookmark_app.command("list")
def bookmark_list(
    id: IdOption = None,
    match: MatchOption = None,
    tags: TagsOption = None,
):
    """List bookmarks, narrowed by id, URL regex and tags."""
    bm = _bookmarks()
    entries = bm.list_entries(id, match, tags)
    TablePrinter(bm.runtime.verbose, bm.runtime.debug, _options["color"]).print_entries(
        entries, row=_bookmark_row, extra_titles=["URL", "Tags"],
    )


@bookmark_app.command("open")
def bookmark_open(
    id: IdOption = None,
    match: MatchOption = None,
    tags: TagsOption = None,
):
    """Open bookmarks in the browser."""
    bm = _bookmarks()
    succeeded, failed = bm.open(id, match, tags)
    typer.echo(f"open() succeeded for {succeeded} files")
    if failed:
        _fail(f"open() failed for {failed} files")


@bookmark_app.command("remove")
def bookmark_remove(
    id: IdOption = None,
    match: MatchOption = None,
    tags: TagsOption = None,
):
    """Remove bookmarks selected by id, URL regex or tags."""
    bm = _bookmarks()
    removed, failed = bm.remove(id, match, tags)
    typer.echo(f"Removed {removed} bookmarks")
    if failed:
        _fail(f"Removing failed for {failed} bookmarks")


def _print_changed(entries: list[Entry]) -> None:
    SimplePrinter(color=_options["color"]).print_entries(entries, row=_bookmark_row)


@bookmark_app.command("add-tags")
def bookmark_add_tags(
    tags: Annotated[str, typer.Argument(help="Tags to add (comma separated)")],
    with_id: WithIdOption = None,
    with_match: WithMatchOption = None,
    with_tags: WithTagsOption = None,
):
    """Add tags to the selected bookmarks."""
    _print_changed(_bookmarks().add_tags(parse_tags(tags), with_id, with_match, with_tags))


@bookmark_app.command("rm-tags")
def bookmark_rm_tags(
    tags: Annotated[str, typer.Argument(help="Tags to remove (comma separated)")],
    with_id: WithIdOption = None,
    with_match: WithMatchOption = None,
    with_tags: WithTagsOption = None,
):
    """Remove tags from the selected bookmarks."""
    _print_changed(_bookmarks().rm_tags(parse_tags(tags), with_id, with_match, with_tags))


@bookmark_app.command("set-tags")
def bookmark_set_tags(
    tags: Annotated[str, typer.Argument(help="New tags (comma separated)")],
    with_id: WithIdOption = None,
    with_match: WithMatchOption = None,
    with_tags: WithTagsOption = None,
):
    """Replace the tags of the selected bookmarks."""
    _print_changed(_bookmarks().set_tags(parse_tags(tags), with_id, with_match, with_tags))


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        if is_not_found(e):
            typer.echo(f"Not found: {e}", err=True)
            raise SystemExit(1)
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="imag CLI", rtp=_options["rtp"])
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
