"""Text helpers shared by the importers and exporters."""

import csv
import io
import logging
import re
from collections.abc import Callable

# Decoded in this order; &amp; goes last so "&amp;lt;" stays "&lt;"
_HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&amp;", "&"),
)

_BREAK_TAG = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_OPEN_TAG = re.compile(r"<(?:div|p)(?:\s[^>]*)?>", re.IGNORECASE)
_BLOCK_CLOSE_TAG = re.compile(r"</(?:div|p)\s*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")

_NUMERIC_ENTITY = re.compile(r"&#(\d+);")
_HEX_ENTITY = re.compile(r"&#x([0-9a-fA-F]+);")

logger = logging.getLogger(__name__)

DELIMITERS = (",", ";", "\t")


def clean_html(html: str) -> str:
    """Reduce HTML card content to plain text.

    Entities are decoded first, then tags are stripped repeatedly until
    nothing changes, so markup revealed by an earlier pass (nested or
    malformed tags) is removed too. Line breaks, divs and paragraphs become
    newlines.
    """
    text = html
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)

    previous = None
    while previous != text:
        previous = text
        text = _BREAK_TAG.sub("\n", text)
        text = _BLOCK_OPEN_TAG.sub("\n", text)
        text = _BLOCK_CLOSE_TAG.sub("", text)
        text = _ANY_TAG.sub("", text)

    return text.strip()


def _safe_chr(code: int, original: str) -> str:
    try:
        return chr(code)
    except (ValueError, OverflowError):
        return original


def decode_xml_entities(text: str) -> str:
    """Decode numeric and the five named XML entities (``&amp;`` last)."""
    text = _NUMERIC_ENTITY.sub(lambda m: _safe_chr(int(m.group(1)), m.group(0)), text)
    text = _HEX_ENTITY.sub(lambda m: _safe_chr(int(m.group(1), 16), m.group(0)), text)
    return (
        text.replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&apos;", "'")
        .replace("&amp;", "&")
    )


def escape_field(text: str) -> str:
    """Quote a delimited-text field if it contains a comma, quote or newline."""
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def sniff_delimiter(header: str) -> str:
    """Pick the delimiter that occurs most often in a header line (comma on ties)."""
    counts = {delim: header.count(delim) for delim in DELIMITERS}
    best = max(DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def physical_lines(text: str) -> list[str]:
    """Split text on ``\\n``, ``\\r`` or ``\\r\\n`` only, keeping line endings.

    A leading byte-order mark is dropped.
    """
    return io.StringIO(text.lstrip("\ufeff"), newline="").readlines()


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Parse a single physical line as one record.

    An unterminated quote runs to the end of the line and never into the
    next one.

    Raises:
        csv.Error: the line cannot be parsed, e.g. a field over the size limit
    """
    return next(csv.reader([line.rstrip("\r\n")], delimiter=delimiter), [])


def read_rows(
    text: str,
    delimiter: str = ",",
    on_error: Callable[[int, str], None] | None = None,
) -> list[list[str]]:
    """Parse delimited text with RFC 4180 quoting, dropping blank rows.

    Quoted fields may span lines. A record the csv module rejects (a quote
    still open at the end of the input, an oversized field) is reported
    with its 1-based starting line number through ``on_error``, or logged
    when no callback is given, and parsing resumes on the line after it.
    """
    lines = physical_lines(text)
    rows: list[list[str]] = []
    start = 0
    while start < len(lines):
        reader = csv.reader(lines[start:], delimiter=delimiter, strict=True)
        consumed = 0
        try:
            for row in reader:
                consumed = reader.line_num
                if any(cell.strip() for cell in row):
                    rows.append(row)
            break
        except csv.Error as e:
            line_number = start + consumed + 1
            if on_error is None:
                logger.warning("Skipping line %d: %s", line_number, e)
            else:
                on_error(line_number, str(e))
            start = line_number
    return rows
