"""Tests for Mnemo storage."""

import sqlite3
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from mnemo.core.models import (
    Card,
    CardState,
    CardTemplate,
    Deck,
    ImportResult,
    Rating,
    ReviewLog,
)
from mnemo.core.storage import Storage

NOW = datetime(2024, 3, 15, 9, 30, 0, 250000, tzinfo=UTC)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage(temp_dir):
    """Create a Storage instance for tests."""
    return Storage(temp_dir / ".mnemo" / "mnemo.db")


@pytest.fixture
def deck(storage):
    deck = Deck(name="Spanish", description="Verbs", created=NOW, modified=NOW)
    storage.decks.save_deck(deck)
    return deck


class TestCardRepository:
    """Tests for SQLiteCardRepository."""

    def test_save_and_load(self, storage, deck):
        """Test every scheduling field survives a save."""
        card = Card(
            deck_id=deck.id,
            front="hablar",
            back="to speak",
            state=CardState.RELEARNING,
            step=0,
            stability=3.25,
            difficulty=6.5,
            elapsed_days=4,
            scheduled_days=0,
            reps=9,
            lapses=2,
            due=NOW + timedelta(minutes=10),
            last_review=NOW,
            created=NOW,
            modified=NOW,
        )
        storage.cards.save_card(card)

        loaded = storage.cards.get_card(card.id)
        assert loaded == card
        assert loaded.due.tzinfo is not None

    def test_missing_card(self, storage):
        assert storage.cards.get_card("nope") is None

    def test_update(self, storage, deck):
        card = Card.new(deck.id, "Q", "A", now=NOW)
        storage.cards.save_card(card)
        card.back = "B"
        card.reps = 1
        storage.cards.save_card(card)

        assert storage.cards.get_card(card.id).back == "B"
        assert storage.cards.get_card_count(deck.id) == 1

    def test_due_cards(self, storage, deck):
        """Test due cards are filtered by cutoff and deck, ordered by due."""
        other = Deck(name="Other")
        storage.decks.save_deck(other)
        later = Card.new(deck.id, "later", "x", now=NOW - timedelta(hours=1))
        earlier = Card.new(deck.id, "earlier", "x", now=NOW - timedelta(days=2))
        future = Card.new(deck.id, "future", "x", now=NOW + timedelta(days=1))
        elsewhere = Card.new(other.id, "elsewhere", "x", now=NOW - timedelta(days=1))
        for card in (later, earlier, future, elsewhere):
            storage.cards.save_card(card)

        due = storage.cards.get_due_cards(NOW, deck.id)
        assert [c.front for c in due] == ["earlier", "later"]
        assert len(storage.cards.get_due_cards(NOW)) == 3

    def test_due_at_exact_cutoff(self, storage, deck):
        storage.cards.save_card(Card.new(deck.id, "now", "x", now=NOW))
        assert len(storage.cards.get_due_cards(NOW)) == 1

    def test_delete(self, storage, deck):
        card = Card.new(deck.id, "Q", "A")
        storage.cards.save_card(card)
        storage.cards.delete_card(card.id)
        assert storage.cards.get_card(card.id) is None
        assert storage.cards.get_all_cards() == []

    def test_unknown_deck_rejected(self, storage):
        with pytest.raises(sqlite3.IntegrityError):
            storage.cards.save_card(Card.new("no-such-deck", "Q", "A"))


class TestDeckRepository:
    """Tests for SQLiteDeckRepository."""

    def test_save_and_list(self, storage, deck):
        storage.decks.save_deck(Deck(name="Arabic"))
        assert storage.decks.get_deck(deck.id) == deck
        assert [d.name for d in storage.decks.get_all_decks()] == ["Arabic", "Spanish"]

    def test_delete_removes_cards(self, storage, deck):
        """Test deleting a deck deletes its cards."""
        card = Card.new(deck.id, "Q", "A")
        storage.cards.save_card(card)

        storage.decks.delete_deck(deck.id)
        assert storage.decks.get_deck(deck.id) is None
        assert storage.cards.get_card(card.id) is None


class TestReviewLogRepository:
    """Tests for SQLiteReviewLogRepository."""

    def _log(self, card_id, when):
        return ReviewLog(
            card_id=card_id,
            rating=Rating.HARD,
            state=CardState.REVIEW,
            due=when + timedelta(days=3),
            stability=3.0,
            difficulty=5.5,
            elapsed_days=2,
            scheduled_days=3,
            review=when,
        )

    def test_save_and_query(self, storage):
        first = self._log("c1", NOW - timedelta(days=3))
        second = self._log("c1", NOW)
        third = self._log("c2", NOW - timedelta(days=1))
        for log in (second, first, third):
            storage.logs.save_log(log)

        assert storage.logs.get_logs_for_card("c1") == [first, second]
        in_range = storage.logs.get_logs_by_date_range(NOW - timedelta(days=2), NOW)
        assert [log.id for log in in_range] == [third.id, second.id]
        assert len(storage.logs.get_all_logs()) == 3

    def test_logs_are_append_only(self, storage):
        log = self._log("c1", NOW)
        storage.logs.save_log(log)
        with pytest.raises(sqlite3.IntegrityError):
            storage.logs.save_log(log)


class TestTemplateRepository:
    """Tests for SQLiteCardTemplateRepository."""

    def test_save_and_load(self, storage, deck):
        template = CardTemplate(
            name="Verb",
            deck_id=deck.id,
            front_template="{{infinitive}}",
            back_template="{{meaning}}",
            field_names=["infinitive", "meaning"],
            created=NOW,
            modified=NOW,
        )
        storage.templates.save_template(template)

        assert storage.templates.get_template(template.id) == template
        assert storage.templates.get_templates_by_deck(deck.id) == [template]
        assert storage.templates.get_templates_by_deck("other") == []

        storage.templates.delete_template(template.id)
        assert storage.templates.get_all_templates() == []


class TestSaveImport:
    """Tests for Storage.save_import."""

    def test_saves_decks_and_cards(self, storage):
        deck = Deck(name="Imported")
        result = ImportResult(
            success=True,
            decks=[deck],
            cards=[Card.new(deck.id, "a", "b"), Card.new(deck.id, "c", "d")],
        )
        assert storage.save_import(result) == 2
        assert storage.cards.get_card_count(deck.id) == 2

    def test_bad_card_skipped(self, storage):
        deck = Deck(name="Imported")
        result = ImportResult(
            success=True,
            decks=[deck],
            cards=[Card.new("missing-deck", "a", "b"), Card.new(deck.id, "c", "d")],
        )
        assert storage.save_import(result) == 1
        assert [c.front for c in storage.cards.get_all_cards()] == ["c"]
