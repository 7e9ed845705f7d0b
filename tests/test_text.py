"""Tests for shared text helpers."""

import pytest

from mnemo.io.text import (
    clean_html,
    decode_xml_entities,
    physical_lines,
    read_rows,
    sniff_delimiter,
    split_line,
)


class TestCleanHtml:
    def test_blocks_become_lines(self):
        assert clean_html("<div>one</div><div>two</div>") == "one\ntwo"
        assert clean_html("a<br>b<BR />c") == "a\nb\nc"

    def test_entities(self):
        assert clean_html("fish&nbsp;&amp;&nbsp;chips") == "fish & chips"
        assert clean_html("&amp;lt;") == "&lt;"

    def test_strips_formatting_tags(self):
        assert clean_html('<span style="color:red"><b>red</b></span>') == "red"


class TestDecodeXmlEntities:
    def test_named_and_numeric(self):
        assert decode_xml_entities("&lt;a&gt; &quot;b&quot; &apos;c&apos;") == "<a> \"b\" 'c'"
        assert decode_xml_entities("caf&#233; &#x263A;") == "café ☺"

    def test_out_of_range_kept(self):
        assert decode_xml_entities("&#99999999999;") == "&#99999999999;"


class TestDelimiters:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [("a,b,c", ","), ("a;b;c", ";"), ("a\tb", "\t"), ("single", ",")],
    )
    def test_sniff(self, header, expected):
        assert sniff_delimiter(header) == expected

    def test_read_rows(self):
        text = '\ufefffront;back\n"a;b";"say ""hi"""\n\n;\n'
        assert read_rows(text, ";") == [["front", "back"], ["a;b", 'say "hi"']]

    def test_read_rows_resumes_after_broken_record(self):
        errors = []
        text = 'a,b\n"open,c\nd,e\n"multi\nline",f\n'
        rows = read_rows(text, on_error=lambda n, e: errors.append(n))
        assert rows == [["a", "b"], ["d", "e"], ["multi\nline", "f"]]
        assert errors == [2]

    def test_physical_lines(self):
        assert physical_lines("\ufeffa\r\nb c\rd") == ["a\r\n", "b c\r", "d"]

    def test_split_line(self):
        assert split_line('"x;y";z\n', ";") == ["x;y", "z"]
        assert split_line('"open,quote\n') == ["open,quote"]
        assert split_line("\n") == []
