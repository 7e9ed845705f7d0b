"""Batch maintenance operations over many cards."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from mnemo.core.models import Card, ensure_utc, new_id, utcnow
from mnemo.core.repository import CardRepository

logger = logging.getLogger(__name__)


@dataclass
class BulkResult:
    """Per-ID outcome of a bulk operation.

    ``skipped`` holds IDs with no matching card; ``failed`` maps IDs whose
    repository call raised to the error message.
    """

    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    created: list[Card] = field(default_factory=list)


class BulkOperations:
    """Applies one operation to a list of card IDs, isolating each ID."""

    def __init__(self, cards: CardRepository):
        self.cards = cards

    def delete_cards(self, card_ids: list[str]) -> BulkResult:
        result = BulkResult()
        for card_id in card_ids:
            try:
                if self.cards.get_card(card_id) is None:
                    result.skipped.append(card_id)
                    continue
                self.cards.delete_card(card_id)
                result.processed.append(card_id)
            except Exception as e:
                logger.warning("Failed to delete card %s: %s", card_id, e)
                result.failed[card_id] = str(e)
        return result

    def move_cards_to_deck(
        self, card_ids: list[str], target_deck_id: str, now: datetime | None = None
    ) -> BulkResult:
        now = ensure_utc(now) or utcnow()

        def move(card: Card) -> None:
            card.deck_id = target_deck_id
            card.modified = now
            self.cards.save_card(card)

        return self._apply(card_ids, move, "move")

    def reset_cards(self, card_ids: list[str], now: datetime | None = None) -> BulkResult:
        """Set cards back to New so they are scheduled from scratch."""
        now = ensure_utc(now) or utcnow()

        def reset(card: Card) -> None:
            card.reset_schedule(now)
            self.cards.save_card(card)

        return self._apply(card_ids, reset, "reset")

    def duplicate_cards(self, card_ids: list[str], now: datetime | None = None) -> BulkResult:
        """Copy cards under fresh IDs; copies start as New cards."""
        now = ensure_utc(now) or utcnow()
        result = BulkResult()

        def duplicate(card: Card) -> None:
            copy = card.model_copy(update={"id": new_id(), "created": now})
            copy.reset_schedule(now)
            self.cards.save_card(copy)
            result.created.append(copy)

        return self._apply(card_ids, duplicate, "duplicate", result)

    def _apply(
        self, card_ids, operation, name: str, result: BulkResult | None = None
    ) -> BulkResult:
        result = result or BulkResult()
        for card_id in card_ids:
            try:
                card = self.cards.get_card(card_id)
                if card is None:
                    result.skipped.append(card_id)
                    continue
                operation(card)
                result.processed.append(card_id)
            except Exception as e:
                logger.warning("Failed to %s card %s: %s", name, card_id, e)
                result.failed[card_id] = str(e)
        return result
