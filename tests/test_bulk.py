"""Tests for bulk maintenance operations."""

from datetime import UTC, datetime, timedelta

import pytest

from mnemo.core.bulk import BulkOperations
from mnemo.core.models import Card, CardState
from mnemo.core.repository import MemoryCardRepository

NOW = datetime(2024, 9, 1, 10, 0, tzinfo=UTC)


def _reviewed_card(deck_id: str = "deck-a", front: str = "q") -> Card:
    return Card(
        deck_id=deck_id,
        front=front,
        back="a",
        state=CardState.REVIEW,
        stability=14.0,
        difficulty=3.5,
        scheduled_days=14,
        reps=6,
        lapses=2,
        due=NOW + timedelta(days=14),
        last_review=NOW - timedelta(days=1),
    )


@pytest.fixture
def repo():
    return MemoryCardRepository([_reviewed_card(front="one"), _reviewed_card(front="two")])


@pytest.fixture
def ops(repo):
    return BulkOperations(repo)


def _ids(repo):
    return [c.id for c in repo.get_all_cards()]


class FailingRepository(MemoryCardRepository):
    """Raises when saving one particular card."""

    def __init__(self, cards, fail_id):
        self.fail_id = fail_id
        super().__init__(cards)

    def save_card(self, card):
        if card.id == self.fail_id:
            raise OSError("disk full")
        super().save_card(card)


class TestResetCards:
    def test_reset_skips_missing_id(self, repo, ops):
        """Test a missing ID is skipped while the others are reset."""
        id1 = _ids(repo)[0]
        result = ops.reset_cards([id1, "does-not-exist"], now=NOW)

        card = repo.get_card(id1)
        assert card.state == CardState.NEW
        assert card.reps == 0
        assert card.lapses == 0
        assert card.due == NOW
        assert card.last_review is None
        assert result.processed == [id1]
        assert result.skipped == ["does-not-exist"]
        assert result.failed == {}

    def test_reset_leaves_other_cards(self, repo, ops):
        id1, id2 = _ids(repo)
        ops.reset_cards([id1], now=NOW)
        assert repo.get_card(id2).state == CardState.REVIEW


class TestMoveCards:
    def test_move(self, repo, ops):
        ids = _ids(repo)
        result = ops.move_cards_to_deck(ids, "deck-b", now=NOW)
        assert result.processed == ids
        assert repo.get_card_count("deck-b") == 2
        moved = repo.get_card(ids[0])
        assert moved.modified == NOW
        assert moved.state == CardState.REVIEW

    def test_failure_isolated(self):
        """Test one failing card does not stop the rest."""
        first, second = _reviewed_card(front="one"), _reviewed_card(front="two")
        repo = FailingRepository([first, second], fail_id=first.id)
        result = BulkOperations(repo).move_cards_to_deck([first.id, second.id], "deck-b")
        assert result.failed == {first.id: "disk full"}
        assert result.processed == [second.id]
        assert repo.get_card(second.id).deck_id == "deck-b"
        assert repo.get_card(first.id).deck_id == "deck-a"


class TestDuplicateCards:
    def test_duplicate(self, repo, ops):
        original_id = _ids(repo)[0]
        result = ops.duplicate_cards([original_id, "nope"], now=NOW)

        assert len(result.created) == 1
        copy = result.created[0]
        assert copy.id != original_id
        assert copy.front == "one"
        assert copy.deck_id == "deck-a"
        assert copy.state == CardState.NEW
        assert copy.reps == 0
        assert copy.created == NOW
        assert len(repo.get_all_cards()) == 3
        assert repo.get_card(original_id).reps == 6
        assert result.skipped == ["nope"]


class TestDeleteCards:
    def test_delete(self, repo, ops):
        id1, id2 = _ids(repo)
        result = ops.delete_cards([id1, "ghost"])
        assert result.processed == [id1]
        assert result.skipped == ["ghost"]
        assert _ids(repo) == [id2]

    def test_empty_list(self, ops):
        result = ops.delete_cards([])
        assert result.processed == []
