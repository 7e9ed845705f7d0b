"""Import Anki packages (.apkg) into Mnemo decks and cards."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from mnemo.core.errors import RowError, StructuralError
from mnemo.core.models import Card, CardState, Deck, ImportResult, utcnow
from mnemo.io.container import (
    CollectionDatabase,
    ContainerReader,
    locate_collection,
    open_archive,
)
from mnemo.io.text import clean_html

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"
DEFAULT_DECK_ID = 1
FALLBACK_DECK_NAME = "Imported"

# Learning/relearning "due" values at or above this are epoch seconds
_EPOCH_SECONDS_THRESHOLD = 1_000_000_000

_NOTES_AND_CARDS = """
    SELECT
        n.id AS nid,
        n.flds AS flds,
        n.tags AS tags,
        c.id AS cid,
        c.did AS did,
        c.ivl AS ivl,
        c.factor AS factor,
        c.reps AS reps,
        c.lapses AS lapses,
        c.due AS due,
        c.type AS type
    FROM notes n
    JOIN cards c ON c.nid = n.id
    ORDER BY c.id
"""

_ANKI_STATES = {
    0: CardState.NEW,
    1: CardState.LEARNING,
    2: CardState.REVIEW,
    3: CardState.RELEARNING,
}


@dataclass
class DeckLookup:
    """Anki deck ID -> Mnemo deck, plus the deck used for unmapped IDs."""

    decks: list[Deck]
    by_source_id: dict[int, str]

    @property
    def fallback_id(self) -> str:
        return self.decks[0].id

    def resolve(self, source_id: int | None) -> str:
        if source_id is not None and source_id in self.by_source_id:
            return self.by_source_id[source_id]
        return self.fallback_id


def map_state(anki_type: int | None) -> CardState:
    """Map Anki card type 0..3 to a CardState; anything else is New."""
    return _ANKI_STATES.get(anki_type if anki_type is not None else 0, CardState.NEW)


def ease_to_difficulty(factor: int | None) -> float:
    """Convert an Anki ease factor (permille, ~1300-3000) to difficulty 1..10.

    Anki stores ease as 2500 for 250%; the conversion works on the percentage.
    """
    ease = (factor or 0) / 10 if (factor or 0) > 1000 else (factor or 0)
    return max(1.0, min(10.0, (300 - ease) / 25))


def split_fields(flds: str | None) -> list[str]:
    return (flds or "").split(FIELD_SEPARATOR)


class AnkiImporter:
    """Converts an .apkg archive into an ImportResult.

    Structural problems (not a zip, no collection, not a database) fail the
    whole import. A bad deck table or a bad card row only adds a warning.
    """

    def __init__(
        self,
        reader: ContainerReader | None = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.reader = reader or ContainerReader()
        self.now_fn = now_fn

    def import_from_apkg(self, data: bytes) -> ImportResult:
        """Import cards from the raw bytes of an .apkg file."""
        result = ImportResult()
        now = self.now_fn()

        try:
            with self.reader.open(data) as package:
                logger.info("Reading %s", package.collection_name)
                lookup = self._extract_decks(package.db, now, result)
                result.decks = lookup.decks
                day_origin = self._collection_created(package.db)
                result.cards = self._extract_cards(package.db, lookup, now, day_origin, result)
                if package.has_media:
                    result.add_warning(
                        "Media files found but not imported (media import not yet supported)"
                    )
        except StructuralError as e:
            logger.warning("Anki import failed: %s", e)
            result.decks = []
            return result.fail(str(e))

        result.success = True
        logger.info(
            "Imported %d card(s) in %d deck(s) with %d warning(s)",
            len(result.cards),
            len(result.decks),
            len(result.warnings),
        )
        return result

    def _extract_decks(
        self, db: CollectionDatabase, now: datetime, result: ImportResult
    ) -> DeckLookup:
        """Read deck names, creating one Mnemo deck per Anki deck."""
        decks: list[Deck] = []
        by_source_id: dict[int, str] = {}

        try:
            for source_id, name in self._read_deck_names(db):
                deck = Deck(
                    name=name,
                    description="Imported from Anki",
                    created=now,
                    modified=now,
                )
                decks.append(deck)
                by_source_id[source_id] = deck.id
        except Exception as e:
            result.add_warning(f"Error extracting decks: {e}")
            logger.warning("Error extracting decks: %s", e)

        if not decks:
            deck = Deck(
                name=FALLBACK_DECK_NAME,
                description="Cards imported from Anki",
                created=now,
                modified=now,
            )
            decks.append(deck)
            by_source_id[DEFAULT_DECK_ID] = deck.id

        return DeckLookup(decks=decks, by_source_id=by_source_id)

    def _read_deck_names(self, db: CollectionDatabase) -> list[tuple[int, str]]:
        """(Anki deck ID, name) pairs.

        Older collections keep a JSON map in ``col.decks``; newer ones leave
        it empty and use a ``decks`` table with ``\\x1f`` as the hierarchy
        separator.
        """
        raw = None
        with db.prepare("SELECT decks FROM col") as cursor:
            if cursor.step():
                raw = cursor.row_as_map().get("decks")

        decks_json = json.loads(raw) if raw and raw.strip() else {}
        if decks_json:
            names = []
            for key, deck_data in decks_json.items():
                name = deck_data.get("name") if isinstance(deck_data, dict) else None
                names.append((int(key), name or f"Deck {key}"))
            return names

        if not self._has_table(db, "decks"):
            return []
        with db.prepare("SELECT id, name FROM decks ORDER BY id") as cursor:
            return [(row["id"], str(row["name"]).replace(FIELD_SEPARATOR, "::")) for row in cursor]

    @staticmethod
    def _has_table(db: CollectionDatabase, name: str) -> bool:
        query = "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?"
        with db.prepare(query, (name,)) as cursor:
            return cursor.step()

    @staticmethod
    def _collection_created(db: CollectionDatabase) -> datetime | None:
        """Collection creation time (``col.crt``), the origin of review day numbers."""
        try:
            with db.prepare("SELECT crt FROM col") as cursor:
                if cursor.step():
                    crt = cursor.row_as_map().get("crt")
                    if crt:
                        return datetime.fromtimestamp(int(crt), UTC)
        except Exception as e:
            logger.debug("No collection creation time: %s", e)
        return None

    def _extract_cards(
        self,
        db: CollectionDatabase,
        lookup: DeckLookup,
        now: datetime,
        day_origin: datetime | None,
        result: ImportResult,
    ) -> list[Card]:
        cards: list[Card] = []
        try:
            cursor = db.prepare(_NOTES_AND_CARDS)
        except Exception as e:
            result.add_warning(f"Error extracting cards: {e}")
            logger.warning("Error extracting cards: %s", e)
            return cards

        with cursor:
            while True:
                try:
                    if not cursor.step():
                        break
                except Exception as e:
                    result.add_warning(f"Error extracting cards: {e}")
                    logger.warning("Error extracting cards: %s", e)
                    break

                row = cursor.row_as_map()
                try:
                    cards.append(self._convert_row(row, lookup, now, day_origin))
                except Exception as e:
                    result.add_warning(f"Skipping card {row.get('cid')}: {e}")
                    logger.warning("Skipping card %s: %s", row.get("cid"), e)
        return cards

    def _convert_row(
        self, row: dict, lookup: DeckLookup, now: datetime, day_origin: datetime | None
    ) -> Card:
        """Build a Card from one notes+cards row.

        Raises:
            RowError: the note has an empty front field
        """
        fields = split_fields(row.get("flds"))
        front = clean_html(fields[0])
        back = clean_html(fields[1]) if len(fields) > 1 else ""
        if not front:
            raise RowError("empty front field")

        state = map_state(row.get("type"))
        interval = max(0, int(row.get("ivl") or 0))
        reps = max(0, int(row.get("reps") or 0))
        due = calculate_due_date(int(row.get("due") or 0), state, now, day_origin)

        last_review = None
        if reps > 0:
            last_review = min(now, due - timedelta(days=interval))

        return Card(
            deck_id=lookup.resolve(row.get("did")),
            front=front,
            back=back,
            created=now,
            modified=now,
            due=due,
            stability=float(max(1, interval)),
            difficulty=ease_to_difficulty(row.get("factor")),
            elapsed_days=interval,
            scheduled_days=interval,
            reps=reps,
            lapses=max(0, int(row.get("lapses") or 0)),
            state=state,
            step=0 if state in (CardState.LEARNING, CardState.RELEARNING) else None,
            last_review=last_review,
        )


def calculate_due_date(
    anki_due: int, state: CardState, now: datetime, day_origin: datetime | None = None
) -> datetime:
    """Translate Anki's ``due`` column into an absolute time.

    - New: due now (Anki stores a queue position, not a time).
    - Learning: epoch seconds.
    - Review: a day number. Today's day number is computed from
      ``day_origin`` (the collection creation time) and the card is due
      the same number of days from now as it is from today in Anki.
      Without an origin the Unix epoch is used, which is only an
      approximation for real collections.
    - Relearning: epoch seconds when the value is that large, otherwise a
      day number.
    """
    if state == CardState.NEW:
        return now
    if state == CardState.LEARNING or (
        state == CardState.RELEARNING and anki_due >= _EPOCH_SECONDS_THRESHOLD
    ):
        return datetime.fromtimestamp(anki_due, UTC)

    origin = day_origin or datetime.fromtimestamp(0, UTC)
    today_number = (now - origin) // timedelta(days=1)
    return now + timedelta(days=anki_due - today_number)


def validate_apkg(data: bytes) -> tuple[bool, str | None]:
    """Check that data is a zip archive containing a collection database."""
    try:
        with open_archive(data) as archive:
            locate_collection(archive)
    except StructuralError as e:
        return False, str(e)
    return True, None


def import_from_apkg(data: bytes, reader: ContainerReader | None = None) -> ImportResult:
    """Import an .apkg file with a default importer."""
    return AnkiImporter(reader=reader).import_from_apkg(data)
