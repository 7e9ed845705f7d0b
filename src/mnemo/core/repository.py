"""
Repository contracts for cards, decks, review logs and templates.

Services depend on these protocols, never on a storage technology.
Implementations:
    - Memory*Repository: in-process dictionaries (tests, previews, imports).
    - mnemo.core.storage.Storage: SQLite-backed, used by the CLI and web app.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from mnemo.core.models import Card, CardTemplate, Deck, ReviewLog, ensure_utc


@runtime_checkable
class CardRepository(Protocol):
    def get_card(self, card_id: str) -> Card | None: ...

    def get_cards_by_deck(self, deck_id: str) -> list[Card]: ...

    def get_due_cards(self, date: datetime, deck_id: str | None = None) -> list[Card]:
        """Cards due on or before ``date``, soonest first."""
        ...

    def save_card(self, card: Card) -> None: ...

    def delete_card(self, card_id: str) -> None: ...

    def get_card_count(self, deck_id: str) -> int: ...

    def get_all_cards(self) -> list[Card]: ...


@runtime_checkable
class DeckRepository(Protocol):
    def get_deck(self, deck_id: str) -> Deck | None: ...

    def get_all_decks(self) -> list[Deck]: ...

    def save_deck(self, deck: Deck) -> None: ...

    def delete_deck(self, deck_id: str) -> None:
        """Delete a deck and all its cards."""
        ...


@runtime_checkable
class ReviewLogRepository(Protocol):
    def get_logs_for_card(self, card_id: str) -> list[ReviewLog]: ...

    def get_logs_by_date_range(self, start: datetime, end: datetime) -> list[ReviewLog]: ...

    def get_all_logs(self) -> list[ReviewLog]: ...

    def save_log(self, log: ReviewLog) -> None: ...


@runtime_checkable
class CardTemplateRepository(Protocol):
    def get_template(self, template_id: str) -> CardTemplate | None: ...

    def get_all_templates(self) -> list[CardTemplate]: ...

    def get_templates_by_deck(self, deck_id: str) -> list[CardTemplate]: ...

    def save_template(self, template: CardTemplate) -> None: ...

    def delete_template(self, template_id: str) -> None: ...


class MemoryCardRepository:
    """Dictionary-backed CardRepository."""

    def __init__(self, cards: list[Card] | None = None):
        self._cards: dict[str, Card] = {}
        for card in cards or []:
            self.save_card(card)

    def get_card(self, card_id: str) -> Card | None:
        card = self._cards.get(card_id)
        return card.model_copy(deep=True) if card else None

    def get_cards_by_deck(self, deck_id: str) -> list[Card]:
        return [c.model_copy(deep=True) for c in self._cards.values() if c.deck_id == deck_id]

    def get_due_cards(self, date: datetime, deck_id: str | None = None) -> list[Card]:
        cutoff = ensure_utc(date)
        due = [
            c.model_copy(deep=True)
            for c in self._cards.values()
            if c.due <= cutoff and (deck_id is None or c.deck_id == deck_id)
        ]
        return sorted(due, key=lambda c: c.due)

    def save_card(self, card: Card) -> None:
        self._cards[card.id] = card.model_copy(deep=True)

    def delete_card(self, card_id: str) -> None:
        self._cards.pop(card_id, None)

    def get_card_count(self, deck_id: str) -> int:
        return sum(1 for c in self._cards.values() if c.deck_id == deck_id)

    def get_all_cards(self) -> list[Card]:
        return [c.model_copy(deep=True) for c in self._cards.values()]


class MemoryDeckRepository:
    """Dictionary-backed DeckRepository; deleting a deck removes its cards."""

    def __init__(self, cards: MemoryCardRepository | None = None):
        self._decks: dict[str, Deck] = {}
        self.cards = cards

    def get_deck(self, deck_id: str) -> Deck | None:
        deck = self._decks.get(deck_id)
        return deck.model_copy() if deck else None

    def get_all_decks(self) -> list[Deck]:
        return sorted((d.model_copy() for d in self._decks.values()), key=lambda d: d.name)

    def save_deck(self, deck: Deck) -> None:
        self._decks[deck.id] = deck.model_copy()

    def delete_deck(self, deck_id: str) -> None:
        self._decks.pop(deck_id, None)
        if self.cards is not None:
            for card in self.cards.get_cards_by_deck(deck_id):
                self.cards.delete_card(card.id)


class MemoryReviewLogRepository:
    """Append-only list of review logs."""

    def __init__(self):
        self._logs: list[ReviewLog] = []

    def get_logs_for_card(self, card_id: str) -> list[ReviewLog]:
        return [log for log in self._logs if log.card_id == card_id]

    def get_logs_by_date_range(self, start: datetime, end: datetime) -> list[ReviewLog]:
        start, end = ensure_utc(start), ensure_utc(end)
        return [log for log in self._logs if start <= log.review <= end]

    def get_all_logs(self) -> list[ReviewLog]:
        return list(self._logs)

    def save_log(self, log: ReviewLog) -> None:
        self._logs.append(log)


class MemoryCardTemplateRepository:
    def __init__(self):
        self._templates: dict[str, CardTemplate] = {}

    def get_template(self, template_id: str) -> CardTemplate | None:
        return self._templates.get(template_id)

    def get_all_templates(self) -> list[CardTemplate]:
        return list(self._templates.values())

    def get_templates_by_deck(self, deck_id: str) -> list[CardTemplate]:
        return [t for t in self._templates.values() if t.deck_id == deck_id]

    def save_template(self, template: CardTemplate) -> None:
        self._templates[template.id] = template

    def delete_template(self, template_id: str) -> None:
        self._templates.pop(template_id, None)
