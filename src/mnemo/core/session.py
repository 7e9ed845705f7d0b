"""Review sessions: schedule a card, persist it, append a review log."""

import logging
from dataclasses import dataclass
from datetime import datetime

from mnemo.core.errors import CardNotFoundError
from mnemo.core.models import Card, Rating, ReviewLog, ensure_utc, utcnow
from mnemo.core.repository import CardRepository, ReviewLogRepository
from mnemo.core.scheduler import SchedulingEngine

logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    """Result of reviewing one card."""

    card: Card
    log: ReviewLog
    persisted: bool = True


class ReviewService:
    """Connects the scheduling engine to the card and review-log repositories."""

    def __init__(
        self,
        engine: SchedulingEngine,
        cards: CardRepository,
        logs: ReviewLogRepository | None = None,
    ):
        self.engine = engine
        self.cards = cards
        self.logs = logs

    def due_cards(
        self,
        now: datetime | None = None,
        deck_id: str | None = None,
        limit: int | None = None,
    ) -> list[Card]:
        """Cards due at ``now``, soonest first."""
        due = self.cards.get_due_cards(ensure_utc(now) or utcnow(), deck_id)
        return due[:limit] if limit is not None else due

    def review(
        self, card_id: str, rating: Rating | int, now: datetime | None = None
    ) -> ReviewOutcome:
        """Review a card by ID.

        The schedule is always computed. Saving the card or its log may fail;
        that is logged and reported on the outcome, so the rest of a session
        can carry on.
        """
        card = self.cards.get_card(card_id)
        if card is None:
            raise CardNotFoundError(f"Card not found: {card_id}")
        return self.review_card(card, rating, now)

    def review_card(
        self, card: Card, rating: Rating | int, now: datetime | None = None
    ) -> ReviewOutcome:
        now = ensure_utc(now) or utcnow()
        rating = self.engine.coerce_rating(rating)
        updated = self.engine.review_card(card, rating, now)
        log = ReviewLog.from_review(updated, rating, now)

        persisted = True
        try:
            self.cards.save_card(updated)
            if self.logs is not None:
                self.logs.save_log(log)
        except Exception:
            logger.exception("Failed to persist review of card %s", card.id)
            persisted = False

        return ReviewOutcome(card=updated, log=log, persisted=persisted)
