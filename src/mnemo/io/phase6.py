"""Import Phase6 vocabulary exports (XML or CSV).

Phase6 sorts vocabulary into six boxes ("phases"), each reviewed less
often than the last. A phase maps onto a fixed memory-model schedule:

    phase   interval   stability   difficulty   state
    1       1 day      5           6            Learning
    2       2 days     10          5            Learning
    3       4 days     15          4            Review
    4       7 days     20          3            Review
    5       14 days    25          2            Review
    6       30 days    30          1            Review
"""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache

from mnemo.core.errors import InvalidInputError, RowError
from mnemo.core.models import Card, CardState, Deck, ImportResult, ensure_utc, utcnow
from mnemo.io.text import decode_xml_entities, physical_lines, sniff_delimiter, split_line

logger = logging.getLogger(__name__)

DEFAULT_DECK_NAME = "Phase6 Import"

PHASE_INTERVALS = (1, 2, 4, 7, 14, 30)
MIN_PHASE = 1
MAX_PHASE = len(PHASE_INTERVALS)

# Tag synonyms, highest priority first
QUESTION_TAGS = ("question", "front", "word", "term", "source")
ANSWER_TAGS = ("answer", "back", "translation", "definition", "target")
PHASE_TAGS = ("phase", "level", "box", "stage")
DATE_TAGS = ("date", "lastStudied")

_DATE_FORMATS = ("%d.%m.%Y", "%d.%m.%Y %H:%M", "%m/%d/%Y", "%Y/%m/%d")


@dataclass(frozen=True)
class PhaseSchedule:
    phase: int
    state: CardState
    stability: float
    difficulty: float
    scheduled_days: int
    reps: int


def map_phase(phase: int) -> PhaseSchedule:
    """Map a Phase6 phase to scheduling values; out-of-range phases are clamped to 1..6."""
    phase = max(MIN_PHASE, min(MAX_PHASE, phase))
    return PhaseSchedule(
        phase=phase,
        state=CardState.LEARNING if phase <= 2 else CardState.REVIEW,
        stability=float(phase * 5),
        difficulty=float(max(1, 7 - phase)),
        scheduled_days=PHASE_INTERVALS[phase - 1],
        reps=max(0, phase - 1),
    )


@dataclass
class VocabEntry:
    question: str
    answer: str
    phase: int = 1
    date: str | None = None


@lru_cache(maxsize=32)
def _open_tag(name: str) -> re.Pattern:
    # Literal tag name followed by a boundary; nothing here can backtrack
    return re.compile(r"<" + re.escape(name) + r"(?=[\s/>])", re.IGNORECASE)


@lru_cache(maxsize=32)
def _close_tag(name: str) -> re.Pattern:
    return re.compile(r"</" + re.escape(name) + r"\s*>", re.IGNORECASE)


class TagScanner:
    """Tolerant, forward-only scanner for simple ``<tag>text</tag>`` markup.

    It is not an XML parser: attributes are ignored, nesting of the same
    tag is not supported, and anything it cannot make sense of is skipped.
    Every search starts where the previous one ended, so scanning a
    document is linear in its length.
    """

    def __init__(self, text: str):
        self.text = text

    def blocks(self, name: str) -> Iterator[str]:
        """Yield the inner text of each ``<name>...</name>`` element in order."""
        pos = 0
        while True:
            inner = self._element_at(name, pos)
            if inner is None:
                return
            content, pos = inner
            yield content

    def first(self, *names: str) -> str | None:
        """Inner text of the first element found, trying names in priority order."""
        for name in names:
            found = self._element_at(name, 0)
            if found is not None:
                return found[0]
        return None

    def _element_at(self, name: str, pos: int) -> tuple[str, int] | None:
        """(inner text, end position) of the next element at or after pos."""
        while True:
            opening = _open_tag(name).search(self.text, pos)
            if opening is None:
                return None
            tag_end = self.text.find(">", opening.end())
            if tag_end == -1:
                return None
            if self.text[tag_end - 1] == "/":
                # Self-closing, no content
                pos = tag_end + 1
                continue
            closing = _close_tag(name).search(self.text, tag_end + 1)
            if closing is None:
                return None
            return self.text[tag_end + 1 : closing.start()], closing.end()


def _parse_phase(raw: str | None) -> int:
    if raw is None:
        return 1
    match = re.match(r"\s*(-?\d+)", raw)
    # 0 is treated like a missing value
    return (int(match.group(1)) or 1) if match else 1


def _parse_date(raw: str | None) -> datetime | None:
    """Parse an export date (ISO 8601 or a common locale format)."""
    if not raw or not raw.strip():
        return None
    raw = raw.strip()
    try:
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return ensure_utc(datetime.strptime(raw, fmt))
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: {raw!r}")


def parse_xml_entries(text: str, skipped: list[str] | None = None) -> list[VocabEntry]:
    """Extract vocabulary entries from ``<entry>`` blocks.

    ``<card>`` blocks are used when there are no entries. Blocks without a
    question or answer are left out and described in ``skipped``.
    """
    scanner = TagScanner(text)
    problems: list[str] = []
    entries = _entries_from_blocks(scanner.blocks("entry"), "entry", problems)
    if not entries:
        problems = []
        entries = _entries_from_blocks(scanner.blocks("card"), "card", problems)
    if skipped is not None:
        skipped.extend(problems)
    return entries


def _entries_from_blocks(
    blocks: Iterator[str], tag: str, skipped: list[str]
) -> list[VocabEntry]:
    entries = []
    for number, block in enumerate(blocks, start=1):
        inner = TagScanner(block)
        question = inner.first(*QUESTION_TAGS)
        answer = inner.first(*ANSWER_TAGS)
        if question is None or answer is None:
            skipped.append(f"Skipping {tag} {number}: missing question or answer")
            continue
        date = inner.first(*DATE_TAGS)
        entries.append(
            VocabEntry(
                question=decode_xml_entities(question.strip()),
                answer=decode_xml_entities(answer.strip()),
                phase=_parse_phase(inner.first(*PHASE_TAGS)),
                date=date.strip() if date else None,
            )
        )
    return entries


def entry_to_card(entry: VocabEntry, deck_id: str, now: datetime) -> Card:
    """Build a card whose schedule follows the entry's phase.

    Raises:
        RowError: question or answer is empty
    """
    if not entry.question or not entry.answer:
        raise RowError("missing question or answer")

    schedule = map_phase(entry.phase)
    try:
        last_review = _parse_date(entry.date)
    except ValueError as e:
        logger.warning("Ignoring last-studied date of %r: %s", entry.question[:20], e)
        last_review = None

    due = now + timedelta(days=schedule.scheduled_days)
    if schedule.reps == 0:
        # Phase 1 counts as never reviewed
        last_review = None
    elif last_review is None:
        # Reviewed cards need a last review; the current interval starts now
        last_review = now

    return Card(
        deck_id=deck_id,
        front=entry.question,
        back=entry.answer,
        created=now,
        modified=now,
        due=due,
        stability=schedule.stability,
        difficulty=schedule.difficulty,
        elapsed_days=0,
        scheduled_days=schedule.scheduled_days,
        reps=schedule.reps,
        lapses=0,
        state=schedule.state,
        step=0 if schedule.state == CardState.LEARNING else None,
        last_review=last_review,
    )


def import_from_xml(
    text: str, deck_name: str = DEFAULT_DECK_NAME, now: datetime | None = None
) -> ImportResult:
    """Import a Phase6 XML export into a new deck."""
    result = ImportResult()
    now = now or utcnow()

    skipped: list[str] = []
    entries = parse_xml_entries(text, skipped)
    for message in skipped:
        result.add_warning(message)
        logger.warning(message)
    if not entries:
        return result.fail("No vocabulary entries found in XML file")

    deck = Deck(
        name=deck_name,
        description=f"Imported from Phase6 ({len(entries)} cards)",
        created=now,
        modified=now,
    )
    result.decks.append(deck)

    for entry in entries:
        try:
            result.cards.append(entry_to_card(entry, deck.id, now))
        except Exception as e:
            message = f'Failed to convert entry "{entry.question[:20]}...": {e}'
            result.add_warning(message)
            logger.warning(message)

    result.success = len(result.cards) > 0
    logger.info("Phase6 XML: %d of %d entries imported", len(result.cards), len(entries))
    return result


@dataclass
class ColumnLayout:
    question: int = 0
    answer: int = 1
    phase: int = 2
    date: int | None = None

    @classmethod
    def from_header(cls, header: list[str]) -> ColumnLayout:
        """Locate columns by case-insensitive keyword.

        Unmatched columns keep their default position.
        """
        layout = cls()
        for i, raw in enumerate(header):
            name = raw.strip().lower()
            if any(word in name for word in QUESTION_TAGS):
                layout.question = i
            elif any(word in name for word in ANSWER_TAGS):
                layout.answer = i
            elif any(word in name for word in PHASE_TAGS):
                layout.phase = i
            elif "date" in name or "studied" in name:
                layout.date = i
        return layout


def _cell(row: list[str], index: int | None) -> str | None:
    if index is None or index >= len(row):
        return None
    return row[index]


def import_from_csv(
    text: str, deck_name: str = DEFAULT_DECK_NAME, now: datetime | None = None
) -> ImportResult:
    """Import a Phase6 CSV export (comma, semicolon or tab separated) into a new deck.

    Each line is one entry. A line that cannot be parsed becomes a warning
    and never affects the lines after it.
    """
    result = ImportResult()
    now = now or utcnow()

    valid, error = validate_import_format(text, "csv")
    if not valid:
        return result.fail(error)

    lines = [(n, line) for n, line in enumerate(physical_lines(text), start=1) if line.strip()]
    if len(lines) < 2:
        return result.fail("CSV file must contain at least a header and one entry")

    delimiter = sniff_delimiter(lines[0][1])
    try:
        header = split_line(lines[0][1], delimiter)
    except csv.Error as e:
        return result.fail(f"Invalid CSV header: {e}")

    deck = Deck(name=deck_name, description="Imported from Phase6", created=now, modified=now)
    result.decks.append(deck)

    layout = ColumnLayout.from_header(header)
    for line_number, line in lines[1:]:
        try:
            row = split_line(line, delimiter)
        except csv.Error as e:
            _skip_row(result, line_number, str(e))
            continue
        if not any(cell.strip() for cell in row):
            continue
        entry = VocabEntry(
            question=(_cell(row, layout.question) or "").strip(),
            answer=(_cell(row, layout.answer) or "").strip(),
            phase=_parse_phase(_cell(row, layout.phase)),
            date=_cell(row, layout.date),
        )
        if not entry.question or not entry.answer:
            _skip_row(result, line_number, "missing question or answer")
            continue
        try:
            result.cards.append(entry_to_card(entry, deck.id, now))
        except Exception as e:
            result.add_warning(f"Error parsing row {line_number}: {e}")
            logger.warning("Error parsing row %d: %s", line_number, e)

    result.success = len(result.cards) > 0
    logger.info("Phase6 CSV: %d of %d rows imported", len(result.cards), len(lines) - 1)
    return result


def _skip_row(result: ImportResult, line_number: int, reason: str) -> None:
    result.add_warning(f"Skipping row {line_number}: {reason}")
    logger.warning("Skipping row %d: %s", line_number, reason)


def validate_import_format(text: str, fmt: str) -> tuple[bool, str | None]:
    """Cheap pre-check of a Phase6 export before importing it.

    Raises:
        InvalidInputError: fmt is neither "xml" nor "csv"
    """
    if fmt == "xml":
        if "<" not in text or ">" not in text:
            return False, "Invalid XML: not a valid XML file"
        if not any(_open_tag(tag).search(text) for tag in ("entry", "card", "vocabulary")):
            return False, "No vocabulary entries found in XML"
        return True, None
    if fmt == "csv":
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            return False, "CSV file must contain at least a header and one entry"
        return True, None
    raise InvalidInputError(f"Unsupported Phase6 format: {fmt!r} (expected xml or csv)")
