"""SQLite-backed implementation of the repository contracts."""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from mnemo.core.models import (
    Card,
    CardState,
    CardTemplate,
    Deck,
    ImportResult,
    Rating,
    ReviewLog,
    ensure_utc,
)

logger = logging.getLogger(__name__)


def _ts(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat(timespec="microseconds") if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


class Database:
    """SQLite database holding decks, cards, review logs and templates."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS decks (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    created TEXT NOT NULL,
                    modified TEXT NOT NULL
                );

                -- Scheduling state is stored column by column
                CREATE TABLE IF NOT EXISTS cards (
                    id TEXT PRIMARY KEY,
                    deck_id TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
                    front TEXT NOT NULL,
                    back TEXT NOT NULL,
                    template_id TEXT,
                    created TEXT NOT NULL,
                    modified TEXT NOT NULL,
                    due TEXT NOT NULL,
                    stability REAL NOT NULL DEFAULT 0.0,
                    difficulty REAL NOT NULL DEFAULT 0.0,
                    elapsed_days INTEGER NOT NULL DEFAULT 0,
                    scheduled_days INTEGER NOT NULL DEFAULT 0,
                    reps INTEGER NOT NULL DEFAULT 0,
                    lapses INTEGER NOT NULL DEFAULT 0,
                    state INTEGER NOT NULL DEFAULT 0,
                    step INTEGER,
                    last_review TEXT
                );

                -- Review log (append-only)
                CREATE TABLE IF NOT EXISTS review_logs (
                    id TEXT PRIMARY KEY,
                    card_id TEXT NOT NULL,
                    rating INTEGER NOT NULL,
                    state INTEGER NOT NULL,
                    due TEXT NOT NULL,
                    stability REAL NOT NULL,
                    difficulty REAL NOT NULL,
                    elapsed_days INTEGER NOT NULL,
                    scheduled_days INTEGER NOT NULL,
                    review TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS card_templates (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    deck_id TEXT,
                    front_template TEXT NOT NULL,
                    back_template TEXT NOT NULL,
                    field_names TEXT NOT NULL DEFAULT '[]',
                    created TEXT NOT NULL,
                    modified TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_cards_deck_id ON cards(deck_id);
                CREATE INDEX IF NOT EXISTS idx_cards_due ON cards(due);
                CREATE INDEX IF NOT EXISTS idx_review_logs_card_id ON review_logs(card_id);
                CREATE INDEX IF NOT EXISTS idx_review_logs_review ON review_logs(review);
            """
            )

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        deck_id=row["deck_id"],
        front=row["front"],
        back=row["back"],
        template_id=row["template_id"],
        created=_parse_ts(row["created"]),
        modified=_parse_ts(row["modified"]),
        due=_parse_ts(row["due"]),
        stability=row["stability"],
        difficulty=row["difficulty"],
        elapsed_days=row["elapsed_days"],
        scheduled_days=row["scheduled_days"],
        reps=row["reps"],
        lapses=row["lapses"],
        state=CardState(row["state"]),
        step=row["step"],
        last_review=_parse_ts(row["last_review"]),
    )


def _row_to_deck(row: sqlite3.Row) -> Deck:
    return Deck(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created=_parse_ts(row["created"]),
        modified=_parse_ts(row["modified"]),
    )


def _row_to_log(row: sqlite3.Row) -> ReviewLog:
    return ReviewLog(
        id=row["id"],
        card_id=row["card_id"],
        rating=Rating(row["rating"]),
        state=CardState(row["state"]),
        due=_parse_ts(row["due"]),
        stability=row["stability"],
        difficulty=row["difficulty"],
        elapsed_days=row["elapsed_days"],
        scheduled_days=row["scheduled_days"],
        review=_parse_ts(row["review"]),
    )


class SQLiteCardRepository:
    def __init__(self, db: Database):
        self.db = db

    def get_card(self, card_id: str) -> Card | None:
        with self.db._connection() as conn:
            row = conn.execute("SELECT * FROM cards WHERE id = ?", (card_id,)).fetchone()
            return _row_to_card(row) if row else None

    def get_cards_by_deck(self, deck_id: str) -> list[Card]:
        with self.db._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM cards WHERE deck_id = ? ORDER BY created", (deck_id,)
            ).fetchall()
            return [_row_to_card(row) for row in rows]

    def get_due_cards(self, date: datetime, deck_id: str | None = None) -> list[Card]:
        # ISO strings in UTC sort chronologically
        query = "SELECT * FROM cards WHERE due <= ?"
        params: list = [_ts(date)]
        if deck_id is not None:
            query += " AND deck_id = ?"
            params.append(deck_id)
        query += " ORDER BY due ASC"
        with self.db._connection() as conn:
            return [_row_to_card(row) for row in conn.execute(query, params).fetchall()]

    def save_card(self, card: Card) -> None:
        """Insert or update a card."""
        with self.db._connection() as conn:
            conn.execute(
                """
                INSERT INTO cards (
                    id, deck_id, front, back, template_id, created, modified,
                    due, stability, difficulty, elapsed_days, scheduled_days,
                    reps, lapses, state, step, last_review
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    deck_id = excluded.deck_id,
                    front = excluded.front,
                    back = excluded.back,
                    template_id = excluded.template_id,
                    modified = excluded.modified,
                    due = excluded.due,
                    stability = excluded.stability,
                    difficulty = excluded.difficulty,
                    elapsed_days = excluded.elapsed_days,
                    scheduled_days = excluded.scheduled_days,
                    reps = excluded.reps,
                    lapses = excluded.lapses,
                    state = excluded.state,
                    step = excluded.step,
                    last_review = excluded.last_review
            """,
                (
                    card.id,
                    card.deck_id,
                    card.front,
                    card.back,
                    card.template_id,
                    _ts(card.created),
                    _ts(card.modified),
                    _ts(card.due),
                    card.stability,
                    card.difficulty,
                    card.elapsed_days,
                    card.scheduled_days,
                    card.reps,
                    card.lapses,
                    int(card.state),
                    card.step,
                    _ts(card.last_review),
                ),
            )

    def delete_card(self, card_id: str) -> None:
        with self.db._connection() as conn:
            conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))

    def get_card_count(self, deck_id: str) -> int:
        with self.db._connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM cards WHERE deck_id = ?", (deck_id,)
            ).fetchone()
            return row[0]

    def get_all_cards(self) -> list[Card]:
        with self.db._connection() as conn:
            return [_row_to_card(row) for row in conn.execute("SELECT * FROM cards").fetchall()]


class SQLiteDeckRepository:
    def __init__(self, db: Database):
        self.db = db

    def get_deck(self, deck_id: str) -> Deck | None:
        with self.db._connection() as conn:
            row = conn.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
            return _row_to_deck(row) if row else None

    def get_all_decks(self) -> list[Deck]:
        with self.db._connection() as conn:
            rows = conn.execute("SELECT * FROM decks ORDER BY name").fetchall()
            return [_row_to_deck(row) for row in rows]

    def save_deck(self, deck: Deck) -> None:
        with self.db._connection() as conn:
            conn.execute(
                """
                INSERT INTO decks (id, name, description, created, modified)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    modified = excluded.modified
            """,
                (deck.id, deck.name, deck.description, _ts(deck.created), _ts(deck.modified)),
            )

    def delete_deck(self, deck_id: str) -> None:
        """Delete a deck; its cards go with it through the foreign key."""
        with self.db._connection() as conn:
            conn.execute("DELETE FROM decks WHERE id = ?", (deck_id,))


class SQLiteReviewLogRepository:
    def __init__(self, db: Database):
        self.db = db

    def get_logs_for_card(self, card_id: str) -> list[ReviewLog]:
        with self.db._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM review_logs WHERE card_id = ? ORDER BY review", (card_id,)
            ).fetchall()
            return [_row_to_log(row) for row in rows]

    def get_logs_by_date_range(self, start: datetime, end: datetime) -> list[ReviewLog]:
        with self.db._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM review_logs WHERE review >= ? AND review <= ? ORDER BY review",
                (_ts(start), _ts(end)),
            ).fetchall()
            return [_row_to_log(row) for row in rows]

    def get_all_logs(self) -> list[ReviewLog]:
        with self.db._connection() as conn:
            rows = conn.execute("SELECT * FROM review_logs ORDER BY review").fetchall()
            return [_row_to_log(row) for row in rows]

    def save_log(self, log: ReviewLog) -> None:
        """Append a review log entry."""
        with self.db._connection() as conn:
            conn.execute(
                """
                INSERT INTO review_logs (
                    id, card_id, rating, state, due, stability, difficulty,
                    elapsed_days, scheduled_days, review
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    log.id,
                    log.card_id,
                    int(log.rating),
                    int(log.state),
                    _ts(log.due),
                    log.stability,
                    log.difficulty,
                    log.elapsed_days,
                    log.scheduled_days,
                    _ts(log.review),
                ),
            )


class SQLiteCardTemplateRepository:
    def __init__(self, db: Database):
        self.db = db

    def _row_to_template(self, row: sqlite3.Row) -> CardTemplate:
        return CardTemplate(
            id=row["id"],
            name=row["name"],
            deck_id=row["deck_id"],
            front_template=row["front_template"],
            back_template=row["back_template"],
            field_names=json.loads(row["field_names"]),
            created=_parse_ts(row["created"]),
            modified=_parse_ts(row["modified"]),
        )

    def get_template(self, template_id: str) -> CardTemplate | None:
        with self.db._connection() as conn:
            row = conn.execute(
                "SELECT * FROM card_templates WHERE id = ?", (template_id,)
            ).fetchone()
            return self._row_to_template(row) if row else None

    def get_all_templates(self) -> list[CardTemplate]:
        with self.db._connection() as conn:
            rows = conn.execute("SELECT * FROM card_templates ORDER BY name").fetchall()
            return [self._row_to_template(row) for row in rows]

    def get_templates_by_deck(self, deck_id: str) -> list[CardTemplate]:
        with self.db._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM card_templates WHERE deck_id = ? ORDER BY name", (deck_id,)
            ).fetchall()
            return [self._row_to_template(row) for row in rows]

    def save_template(self, template: CardTemplate) -> None:
        with self.db._connection() as conn:
            conn.execute(
                """
                INSERT INTO card_templates (
                    id, name, deck_id, front_template, back_template, field_names, created, modified
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    deck_id = excluded.deck_id,
                    front_template = excluded.front_template,
                    back_template = excluded.back_template,
                    field_names = excluded.field_names,
                    modified = excluded.modified
            """,
                (
                    template.id,
                    template.name,
                    template.deck_id,
                    template.front_template,
                    template.back_template,
                    json.dumps(template.field_names),
                    _ts(template.created),
                    _ts(template.modified),
                ),
            )

    def delete_template(self, template_id: str) -> None:
        with self.db._connection() as conn:
            conn.execute("DELETE FROM card_templates WHERE id = ?", (template_id,))


class Storage:
    """Combined storage manager for Mnemo."""

    def __init__(self, db_path: Path):
        self.db = Database(db_path)
        self.cards = SQLiteCardRepository(self.db)
        self.decks = SQLiteDeckRepository(self.db)
        self.logs = SQLiteReviewLogRepository(self.db)
        self.templates = SQLiteCardTemplateRepository(self.db)

    def save_import(self, result: ImportResult) -> int:
        """Persist the decks and cards of a successful import.

        Each card is saved on its own; a failing card is logged and skipped.
        Returns the number of cards saved.
        """
        for deck in result.decks:
            self.decks.save_deck(deck)

        saved = 0
        for card in result.cards:
            try:
                self.cards.save_card(card)
                saved += 1
            except sqlite3.Error:
                logger.exception("Failed to save imported card %s", card.id)
        return saved

    def save_cards(self, cards: list[Card]) -> int:
        return self.save_import(ImportResult(success=True, cards=cards))
