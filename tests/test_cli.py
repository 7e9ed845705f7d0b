"""Tests for the Mnemo CLI."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import build_apkg
from typer.testing import CliRunner

from mnemo.cli import helpers
from mnemo.cli.main import app
from mnemo.core.models import Card, CardState, Deck

runner = CliRunner()

PHASE6_XML = """<vocabulary>
  <entry><question>der Hund</question><answer>the dog</answer><phase>4</phase></entry>
  <entry><question>die Katze</question><answer>the cat</answer><phase>1</phase></entry>
</vocabulary>
"""


@pytest.fixture()
def storage(tmp_path: Path):
    """Point the CLI at a temporary data directory."""
    with patch.dict("os.environ", {"MNEMO_DATA_DIR": str(tmp_path / ".mnemo")}, clear=False):
        # Reset the global storage so it gets recreated with our temp dir
        helpers.reset_storage()
        yield helpers.get_storage()
        helpers.reset_storage()


@pytest.fixture()
def deck_with_cards(storage):
    deck = Deck(name="Spanish")
    storage.decks.save_deck(deck)
    cards = [Card.new(deck.id, "hola", "hello"), Card.new(deck.id, "adios", "goodbye")]
    for card in cards:
        storage.cards.save_card(card)
    return deck, cards


class TestImportApkg:
    def test_import(self, storage, make_apkg, tmp_path):
        path = tmp_path / "deck.apkg"
        path.write_bytes(
            make_apkg(
                notes=[{"id": 1, "fields": ["Hund", "dog"]}],
                cards=[{"id": 1, "nid": 1}],
                decks={1: "German"},
            )
        )
        result = runner.invoke(app, ["import", "apkg", str(path)])
        assert result.exit_code == 0, result.output
        assert "Imported 1 card(s)" in result.output
        [deck] = storage.decks.get_all_decks()
        assert deck.name == "German"
        assert storage.cards.get_cards_by_deck(deck.id)[0].front == "Hund"

    def test_dry_run_saves_nothing(self, storage, make_apkg, tmp_path):
        path = tmp_path / "deck.apkg"
        path.write_bytes(
            make_apkg(notes=[{"id": 1, "fields": ["a", "b"]}], cards=[{"id": 1, "nid": 1}])
        )
        result = runner.invoke(app, ["import", "apkg", str(path), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert storage.cards.get_all_cards() == []

    def test_broken_package(self, storage, tmp_path):
        path = tmp_path / "broken.apkg"
        path.write_bytes(build_apkg({"media": b"{}"}))
        result = runner.invoke(app, ["import", "apkg", str(path)])
        assert result.exit_code == 1
        assert "collection database not found" in result.output
        assert storage.decks.get_all_decks() == []

    def test_missing_file(self, storage, tmp_path):
        result = runner.invoke(app, ["import", "apkg", str(tmp_path / "nope.apkg")])
        assert result.exit_code == 1
        assert "File not found" in result.output


class TestImportPhase6:
    def test_xml(self, storage, tmp_path):
        path = tmp_path / "export.xml"
        path.write_text(PHASE6_XML, encoding="utf-8")
        result = runner.invoke(app, ["import", "phase6", str(path), "--deck-name", "German"])
        assert result.exit_code == 0, result.output
        [deck] = storage.decks.get_all_decks()
        assert deck.name == "German"
        states = {c.front: c.state for c in storage.cards.get_cards_by_deck(deck.id)}
        assert states == {"der Hund": CardState.REVIEW, "die Katze": CardState.LEARNING}

    def test_csv_by_flag(self, storage, tmp_path):
        path = tmp_path / "export.txt"
        path.write_text("question;answer;phase\nHaus;house;2\n", encoding="utf-8")
        result = runner.invoke(app, ["import", "phase6", str(path), "--format", "csv"])
        assert result.exit_code == 0, result.output
        assert len(storage.cards.get_all_cards()) == 1

    def test_unknown_format(self, storage, tmp_path):
        path = tmp_path / "export.txt"
        path.write_text("whatever", encoding="utf-8")
        result = runner.invoke(app, ["import", "phase6", str(path)])
        assert result.exit_code == 1
        assert "Unknown Phase6 format" in result.output

    def test_not_utf8(self, storage, tmp_path):
        path = tmp_path / "export.xml"
        path.write_bytes(b"\xff\xfe\xfa")
        result = runner.invoke(app, ["import", "phase6", str(path)])
        assert result.exit_code == 1
        assert "Not UTF-8 text" in result.output
        assert storage.decks.get_all_decks() == []


class TestCsvAndJson:
    def test_import_csv_creates_deck(self, storage, tmp_path):
        path = tmp_path / "cards.csv"
        path.write_text("front,back,tags\nuno,one,\ndos,two,\n", encoding="utf-8")
        result = runner.invoke(app, ["import", "csv", str(path), "--deck", "Numbers"])
        assert result.exit_code == 0, result.output
        [deck] = storage.decks.get_all_decks()
        assert deck.name == "Numbers"
        assert storage.cards.get_card_count(deck.id) == 2

    def test_import_csv_not_utf8(self, storage, tmp_path):
        path = tmp_path / "cards.csv"
        path.write_bytes(b"front,back\n\xe4pfel,apples\n")
        result = runner.invoke(app, ["import", "csv", str(path), "--deck", "Fruit"])
        assert result.exit_code == 1
        assert "Not UTF-8 text" in result.output
        assert storage.decks.get_all_decks() == []

    def test_export_then_import_json(self, storage, deck_with_cards, tmp_path):
        deck, cards = deck_with_cards
        out = tmp_path / "spanish.json"
        result = runner.invoke(app, ["export", "Spanish", "--output", str(out)])
        assert result.exit_code == 0, result.output
        assert len(json.loads(out.read_text(encoding="utf-8"))["cards"]) == 2

        result = runner.invoke(app, ["import", "json", str(out), "--deck", "Spanish copy"])
        assert result.exit_code == 0, result.output
        copy = next(d for d in storage.decks.get_all_decks() if d.name == "Spanish copy")
        fronts = sorted(c.front for c in storage.cards.get_cards_by_deck(copy.id))
        assert fronts == ["adios", "hola"]
        assert storage.cards.get_card_count(deck.id) == 2

    def test_bad_json_creates_no_deck(self, storage, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{oops", encoding="utf-8")
        result = runner.invoke(app, ["import", "json", str(path), "--deck", "Ghost"])
        assert result.exit_code == 1
        assert storage.decks.get_all_decks() == []

    def test_export_csv_to_stdout(self, storage, deck_with_cards):
        result = runner.invoke(app, ["export", "Spanish", "--format", "csv"])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines()[0] == "front,back,tags"
        assert "hola,hello,Spanish" in result.output

    def test_export_unknown_deck(self, storage):
        result = runner.invoke(app, ["export", "Nope"])
        assert result.exit_code == 1
        assert "Deck not found" in result.output


class TestDecksAndStats:
    def test_no_decks(self, storage):
        result = runner.invoke(app, ["decks"])
        assert result.exit_code == 0
        assert "No decks yet" in result.output

    def test_decks(self, storage, deck_with_cards):
        result = runner.invoke(app, ["decks"])
        assert result.exit_code == 0
        assert "Spanish" in result.output

    def test_stats(self, storage, deck_with_cards):
        result = runner.invoke(app, ["stats", "--deck", "Spanish"])
        assert result.exit_code == 0, result.output
        assert "Total Cards" in result.output
        assert "Start studying" in result.output

    def test_add(self, storage):
        result = runner.invoke(app, ["add", "French", "--front", "chat", "--back", "cat"])
        assert result.exit_code == 0, result.output
        assert "Card saved" in result.output
        assert storage.cards.get_all_cards()[0].front == "chat"


class TestReviewAndPreview:
    def test_review_session(self, storage, deck_with_cards):
        # Reveal, rate Good, reveal, quit
        result = runner.invoke(app, ["review", "--deck", "Spanish"], input="\n3\n\nq\n")
        assert result.exit_code == 0, result.output
        assert "Reviewed 1 card(s)" in result.output
        reviewed = [c for c in storage.cards.get_all_cards() if c.reps == 1]
        assert len(reviewed) == 1
        assert reviewed[0].state == CardState.LEARNING
        assert len(storage.logs.get_all_logs()) == 1

    def test_nothing_due(self, storage):
        result = runner.invoke(app, ["review"])
        assert result.exit_code == 0
        assert "No cards due" in result.output

    def test_preview_does_not_change_card(self, storage, deck_with_cards):
        _, cards = deck_with_cards
        result = runner.invoke(app, ["preview", cards[0].id[:8]])
        assert result.exit_code == 0, result.output
        assert "Again" in result.output
        assert "Easy" in result.output
        assert storage.cards.get_card(cards[0].id).reps == 0


class TestBulkCommands:
    def test_reset_reports_missing(self, storage, deck_with_cards):
        deck, cards = deck_with_cards
        card = cards[0]
        card.state = CardState.REVIEW
        card.reps = 4
        storage.cards.save_card(card)

        result = runner.invoke(app, ["reset", card.id, "missing-id"])
        assert result.exit_code == 0, result.output
        assert "Reset 1 card(s)" in result.output
        assert "missing-id" in result.output
        assert storage.cards.get_card(card.id).state == CardState.NEW

    def test_move(self, storage, deck_with_cards):
        _, cards = deck_with_cards
        other = Deck(name="Archive")
        storage.decks.save_deck(other)
        result = runner.invoke(app, ["move", cards[0].id, "--to", "Archive"])
        assert result.exit_code == 0, result.output
        assert storage.cards.get_card(cards[0].id).deck_id == other.id

    def test_duplicate(self, storage, deck_with_cards):
        deck, cards = deck_with_cards
        result = runner.invoke(app, ["duplicate", cards[1].id])
        assert result.exit_code == 0, result.output
        assert storage.cards.get_card_count(deck.id) == 3

    def test_delete_requires_confirmation(self, storage, deck_with_cards):
        deck, cards = deck_with_cards
        result = runner.invoke(app, ["delete", cards[0].id], input="n\n")
        assert result.exit_code == 0
        assert storage.cards.get_card_count(deck.id) == 2

        result = runner.invoke(app, ["delete", cards[0].id, "--yes"])
        assert result.exit_code == 0, result.output
        assert storage.cards.get_card(cards[0].id) is None
