"""Inline markup spans in card text: **bold**, *italic* and `code`."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MarkupToken:
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False

    @property
    def plain(self) -> bool:
        return not (self.bold or self.italic or self.code)


# Delimiter -> style, longest delimiter first
_DELIMITERS = (("**", "bold"), ("`", "code"), ("*", "italic"))


def _match_span(text: str, pos: int) -> tuple[str, str, int] | None:
    """Try to read a styled span starting at ``pos``.

    Returns (style, inner text, end position) or None. Spans do not nest
    and never contain their own delimiter character, so each attempt is a
    single forward search.
    """
    for delim, style in _DELIMITERS:
        if not text.startswith(delim, pos):
            continue
        start = pos + len(delim)
        end = text.find(delim, start)
        if end <= start:
            return None
        inner = text[start:end]
        if delim[0] in inner:
            return None
        return style, inner, end + len(delim)
    return None


def parse_markup(text: str) -> list[MarkupToken]:
    """Split text into plain and styled tokens.

    Unmatched delimiters are kept as plain text.
    """
    tokens: list[MarkupToken] = []
    plain_start = 0
    pos = 0
    while pos < len(text):
        if text[pos] not in "*`":
            pos += 1
            continue
        span = _match_span(text, pos)
        if span is None:
            pos += 2 if text.startswith("**", pos) else 1
            continue
        style, inner, end = span
        if plain_start < pos:
            tokens.append(MarkupToken(text[plain_start:pos]))
        tokens.append(MarkupToken(inner, **{style: True}))
        pos = plain_start = end

    if plain_start < len(text):
        tokens.append(MarkupToken(text[plain_start:]))
    return tokens or [MarkupToken(text)]


def has_markup(text: str) -> bool:
    """Check whether text contains at least one styled span."""
    return any(not token.plain for token in parse_markup(text))
