"""Generic CSV and JSON export/import of a deck's cards.

CSV carries only content (``front,back,tags``) and imports as new cards.
JSON keeps every scheduling field, so an exported deck can be restored
with its review history intact.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import ValidationError

from mnemo.core.errors import InvalidInputError, StructuralError
from mnemo.core.models import Card, Deck, utcnow
from mnemo.io.text import escape_field, read_rows

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
CSV_HEADER = "front,back,tags"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_TIMESTAMP_FIELDS = ("created", "modified", "due", "last_review")

__all__ = [
    "escape_field",
    "export_to_delimited_text",
    "export_to_json",
    "import_from_delimited_text",
    "import_from_json",
    "validate_import_format",
]


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def export_to_delimited_text(cards: Iterable[Card], deck: Deck) -> str:
    """Export cards as CSV with the deck name in the tags column."""
    tags = escape_field(deck.name)
    lines = [CSV_HEADER]
    for card in cards:
        lines.append(f"{escape_field(card.front)},{escape_field(card.back)},{tags}")
    return "\n".join(lines)


def _card_to_dict(card: Card) -> dict:
    data = card.model_dump(mode="json")
    for name in _TIMESTAMP_FIELDS:
        value = getattr(card, name)
        data[name] = format_timestamp(value) if value is not None else None
    return data


def export_to_json(cards: Iterable[Card], deck: Deck, now: datetime | None = None) -> str:
    """Export cards with every field, inside a versioned envelope."""
    envelope = {
        "version": EXPORT_VERSION,
        "exportDate": format_timestamp(now or utcnow()),
        "deck": {"name": deck.name, "description": deck.description},
        "cards": [_card_to_dict(card) for card in cards],
    }
    return json.dumps(envelope, indent=2, ensure_ascii=False)


def import_from_delimited_text(text: str, deck_id: str, now: datetime | None = None) -> list[Card]:
    """Create new cards from ``front,back[,tags]`` rows.

    A first row mentioning "front" is treated as a header. Rows without
    both a front and a back are skipped, and so are records that cannot be
    parsed, such as an unterminated quote; reading resumes on the next line.
    """
    now = now or utcnow()

    def skip(line_number: int, error: str) -> None:
        logger.warning("Skipping line %d: %s", line_number, error)

    rows = read_rows(text, ",", on_error=skip)
    if rows and any("front" in cell.lower() for cell in rows[0]):
        rows = rows[1:]

    cards = []
    for row in rows:
        if len(row) < 2:
            continue
        front, back = row[0].strip(), row[1].strip()
        if front and back:
            cards.append(Card.new(deck_id, front, back, now=now))
    logger.info("Read %d card(s) from delimited text", len(cards))
    return cards


def _parse_envelope(text: str) -> list:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StructuralError(f"Failed to parse JSON: {e}") from e
    cards = data.get("cards") if isinstance(data, dict) else None
    if not isinstance(cards, list):
        raise StructuralError("Invalid JSON format: missing cards array")
    return cards


def import_from_json(text: str, deck_id: str) -> list[Card]:
    """Restore cards from a JSON export into ``deck_id``.

    Every card gets a fresh ID and the target deck, so importing the same
    file twice never collides with existing cards.

    Raises:
        StructuralError: the text is not JSON or has no ``cards`` array
    """
    entries = _parse_envelope(text)

    cards = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("Skipping card %d: not an object", index)
            continue
        data = {key: value for key, value in entry.items() if key not in ("id", "deckId")}
        data["deck_id"] = deck_id
        try:
            cards.append(Card.model_validate(data))
        except ValidationError as e:
            logger.warning("Skipping card %d: %s", index, e.errors()[0]["msg"])
    logger.info("Read %d of %d card(s) from JSON", len(cards), len(entries))
    return cards


def validate_import_format(text: str, fmt: str) -> tuple[bool, str | None]:
    """Check that text looks importable as ``csv`` or ``json``.

    Raises:
        InvalidInputError: fmt is neither "csv" nor "json"
    """
    if fmt == "json":
        try:
            entries = _parse_envelope(text)
        except StructuralError as e:
            return False, str(e)
        if not entries:
            return False, "No cards found in JSON file"
        return True, None
    if fmt == "csv":
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            return False, "CSV file must contain at least a header and one card"
        return True, None
    raise InvalidInputError(f"Unsupported format: {fmt!r} (expected csv or json)")
