"""Tests for terminal output of entries."""

from imag.printer import SimplePrinter, TablePrinter, format_entry, render_table
from imag.types import Entry, FileID, FileIDType

HASH = "0b0e2c1a-3f4d-4b6e-8a9c-1d2e3f4a5b6c"


def make_entry(header=None, content=""):
    return Entry(owner="notes", id=FileID.new(FileIDType.UUID, HASH), header=header, content=content)


class TestRenderTable:

    def test_alignment(self):
        out = render_table(["#", "Name"], [["1", "a"], ["10", "longer"]])
        assert out.splitlines() == [
            "#  | Name",
            "---+-------",
            "1  | a",
            "10 | longer",
        ]

    def test_ragged_rows_padded(self):
        out = render_table(["a"], [["1", "extra"]])
        assert out.splitlines()[0] == "a"
        assert out.splitlines()[2] == "1 | extra"

    def test_no_rows(self):
        assert render_table(["a", "b"], []) == "a | b\n--+--"


class TestPrinters:

    def test_table(self, capsys):
        TablePrinter(color=False).print_entries([make_entry()], row=lambda e: ["x"], extra_titles=["X"])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split(" | ") == ["#", "Module", "ID-Type", "ID".ljust(len(HASH)), "X"]
        assert lines[2].split(" | ") == ["1", "notes ", "UUID   ", HASH, "x"]

    def test_table_empty_prints_nothing(self, capsys):
        TablePrinter(color=False).print_entries([])
        assert capsys.readouterr().out == ""

    def test_simple(self, capsys):
        SimplePrinter(color=False).print_entries([make_entry()])
        assert capsys.readouterr().out == f"[File]: UUID-{HASH}\n"

    def test_simple_with_row(self, capsys):
        SimplePrinter(color=False).print_entries([make_entry()], row=lambda e: ["a", "b"])
        assert capsys.readouterr().out == "[File]: a b\n"

    def test_simple_verbose(self, capsys):
        SimplePrinter(verbose=True, color=False).print_entry(make_entry({"k": 1}, "body"))
        assert capsys.readouterr().out == format_entry(make_entry({"k": 1}, "body")) + "\n"


class TestFormatEntry:

    def test_full(self):
        text = format_entry(make_entry({"b": 1, "a": [True]}, "content"))
        assert text == (
            f"notes UUID-{HASH}\n"
            '{\n  "a": [\n    true\n  ],\n  "b": 1\n}\n'
            "content"
        )

    def test_no_content(self):
        assert format_entry(make_entry(), content=True) == f"notes UUID-{HASH}\nnull"

    def test_header_only(self):
        assert format_entry(make_entry({}, "x"), content=False) == f"notes UUID-{HASH}\n{{}}"
