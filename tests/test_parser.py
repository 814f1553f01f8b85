"""Tests for header parsers and header schemas."""

import pytest

from imag.errors import ParseError, SchemaError, SerializeError
from imag.parser import (
    AnyValue,
    Array,
    Bool,
    Integer,
    JsonHeaderParser,
    Key,
    Map,
    Null,
    Text,
    YamlHeaderParser,
    get_parser,
    split_frontmatter,
)

SAMPLES = [
    (None, ""),
    ({}, "content"),
    ({"url": "http://example.com", "tags": ["a", "b"]}, ""),
    ({"nested": {"n": 1, "flag": False, "none": None}}, "multi\nline\n---\nbody\n"),
    (["x", 1, True], "trailing newline\n"),
    ("just a string", "---"),
    ({"unicode": "grüße ✓"}, "ünïcode body"),
    ({"yes": "no", "date": "2026-01-01", "num": "42"}, "\n\nleading blank lines"),
]


@pytest.fixture(params=[JsonHeaderParser, YamlHeaderParser])
def parser(request):
    return request.param()


class TestRoundTrip:

    @pytest.mark.parametrize("header,content", SAMPLES)
    def test_read_inverts_write(self, parser, header, content):
        assert parser.read(parser.write(header, content)) == (header, content)

    def test_framing(self, parser):
        text = parser.write({"a": 1}, "body")
        assert text.startswith("---\n")
        assert text.endswith("\n---\nbody")

    def test_json_layout(self):
        text = JsonHeaderParser().write({"b": 1, "a": 2}, "x")
        assert text == '---\n{\n  "a": 2,\n  "b": 1\n}\n---\nx'


class TestReadErrors:

    def test_missing_frame(self, parser):
        with pytest.raises(ParseError):
            parser.read("no header here")

    def test_unterminated_frame(self, parser):
        with pytest.raises(ParseError):
            parser.read('---\n{"a": 1}\n')

    def test_closing_frame_at_end(self):
        assert split_frontmatter('---\n{"a": 1}\n---') == ('{"a": 1}', "")

    def test_bad_json(self):
        with pytest.raises(ParseError):
            JsonHeaderParser().read("---\n{not json\n---\n")

    def test_bad_yaml(self):
        with pytest.raises(ParseError):
            YamlHeaderParser().read("---\nkey: [unclosed\n---\n")

    def test_float_header_rejected(self, parser):
        with pytest.raises(SchemaError):
            parser.read("---\n{\"a\": 1.5}\n---\n")

    def test_schema_error_is_parse_error(self):
        assert issubclass(SchemaError, ParseError)


class TestWriteErrors:

    def test_non_text_content(self, parser):
        with pytest.raises(SerializeError):
            parser.write({}, b"bytes")

    def test_lone_surrogate_in_content(self, parser):
        # what undecodable argv bytes turn into
        with pytest.raises(SerializeError, match="UTF-8"):
            parser.write({}, "bad\udcff")

    def test_lone_surrogate_in_header(self):
        with pytest.raises(SerializeError):
            JsonHeaderParser().write({"t": "bad\ud800"}, "")

    def test_invalid_header(self, parser):
        with pytest.raises(SchemaError):
            parser.write({"a": object()}, "")


BOOKMARK = Map([
    Key("url", Text()),
    Key("tags", Array(Text()), optional=True),
])


class TestHeaderSpec:

    def test_valid(self):
        BOOKMARK.validate({"url": "http://x", "tags": ["a"]})
        BOOKMARK.validate({"url": "http://x"})

    def test_missing_required(self):
        with pytest.raises(SchemaError, match="url"):
            BOOKMARK.validate({"tags": []})

    def test_wrong_type(self):
        with pytest.raises(SchemaError, match=r"tags\[1\]"):
            BOOKMARK.validate({"url": "x", "tags": ["a", 1]})

    def test_not_a_map(self):
        with pytest.raises(SchemaError):
            BOOKMARK.validate(["url"])

    def test_bool_is_not_integer(self):
        with pytest.raises(SchemaError):
            Integer().validate(True)
        Integer().validate(3)
        Bool().validate(False)
        Null().validate(None)

    def test_any_value(self):
        AnyValue().validate({"a": [1, None]})
        with pytest.raises(SchemaError):
            AnyValue().validate(1.0)

    def test_parser_enforces_spec_on_read_and_write(self):
        parser = JsonHeaderParser(BOOKMARK)
        with pytest.raises(SchemaError):
            parser.write({"tags": []}, "")
        raw = JsonHeaderParser().write({"tags": []}, "")
        with pytest.raises(SchemaError):
            parser.read(raw)


class TestGetParser:

    def test_known(self):
        assert isinstance(get_parser("json"), JsonHeaderParser)
        assert isinstance(get_parser("yaml"), YamlHeaderParser)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown parser"):
            get_parser("toml")
