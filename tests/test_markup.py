"""Tests for inline markup parsing."""

from mnemo.core.markup import MarkupToken, has_markup, parse_markup


class TestParseMarkup:
    def test_plain(self):
        assert parse_markup("just text") == [MarkupToken("just text")]

    def test_empty(self):
        assert parse_markup("") == [MarkupToken("")]

    def test_styles(self):
        tokens = parse_markup("a **bold** b *it* c `x = 1`")
        assert tokens == [
            MarkupToken("a "),
            MarkupToken("bold", bold=True),
            MarkupToken(" b "),
            MarkupToken("it", italic=True),
            MarkupToken(" c "),
            MarkupToken("x = 1", code=True),
        ]

    def test_unmatched_delimiters_stay_plain(self):
        assert parse_markup("2 * 3 = 6") == [MarkupToken("2 * 3 = 6")]
        assert parse_markup("**open") == [MarkupToken("**open")]

    def test_code_keeps_asterisks(self):
        assert parse_markup("`a*b`") == [MarkupToken("a*b", code=True)]

    def test_long_unbalanced_input(self):
        text = "*" * 5001
        assert "".join(t.text for t in parse_markup(text)) == text


class TestHasMarkup:
    def test_detects(self):
        assert has_markup("see **this**")
        assert not has_markup("nothing here")
        assert not has_markup("a * b")
