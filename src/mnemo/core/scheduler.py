"""FSRS scheduling engine for Mnemo cards."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from fsrs import Card as FSRSCard
from fsrs import Rating as FSRSRating
from fsrs import Scheduler as FSRSScheduler
from fsrs import State

from mnemo.core.errors import InvalidRatingError
from mnemo.core.models import Card, CardState, Rating, ensure_utc, utcnow

if TYPE_CHECKING:
    from mnemo.config import Settings

logger = logging.getLogger(__name__)

_TO_FSRS_STATE = {
    CardState.LEARNING: State.Learning,
    CardState.REVIEW: State.Review,
    CardState.RELEARNING: State.Relearning,
}

_FROM_FSRS_STATE = {
    State.Learning: CardState.LEARNING,
    State.Review: CardState.REVIEW,
    State.Relearning: CardState.RELEARNING,
}


def format_interval(days: float) -> str:
    """Format an interval in days as a short human-readable string.

    Under a day shows minutes, under 30 days shows days, under a year
    shows 30-day months, anything longer shows years.
    """
    if days < 1:
        return f"{round(days * 24 * 60)}m"
    if days < 30:
        return f"{round(days)}d"
    if days < 365:
        return f"{round(days / 30)}mo"
    return f"{round(days / 365)}y"


@dataclass(frozen=True)
class SchedulingOption:
    """Projected outcome of answering a card with one rating."""

    rating: Rating
    interval: str
    card: Card


@dataclass(frozen=True)
class SchedulingInfo:
    """Projected outcomes for all four ratings."""

    again: SchedulingOption
    hard: SchedulingOption
    good: SchedulingOption
    easy: SchedulingOption

    def by_rating(self) -> dict[Rating, SchedulingOption]:
        return {opt.rating: opt for opt in (self.again, self.hard, self.good, self.easy)}


class SchedulingEngine:
    """Wraps the py-fsrs Scheduler and maps its cards onto Mnemo cards.

    One engine is built at startup and handed to whatever needs to review
    or preview cards. It holds no per-card state; callers must not review
    the same card concurrently.
    """

    def __init__(
        self,
        desired_retention: float = 0.9,
        maximum_interval: int = 36500,
        enable_fuzzing: bool = False,
        strict_ratings: bool = False,
    ):
        """Initialize the engine.

        Args:
            desired_retention: Target probability of recall (default 0.9 = 90%)
            maximum_interval: Longest interval the scheduler may assign, in days
            enable_fuzzing: Randomise review intervals slightly. Off by default
                so that previews are reproducible.
            strict_ratings: Reject unknown ratings instead of treating them as Good
        """
        self.fsrs = FSRSScheduler(
            desired_retention=desired_retention,
            maximum_interval=maximum_interval,
            enable_fuzzing=enable_fuzzing,
        )
        self.strict_ratings = strict_ratings

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulingEngine:
        return cls(
            desired_retention=settings.desired_retention,
            maximum_interval=settings.maximum_interval,
            enable_fuzzing=settings.enable_fuzzing,
            strict_ratings=settings.strict_ratings,
        )

    def coerce_rating(self, rating: Rating | int) -> Rating:
        """Turn a raw rating value into a Rating.

        Unknown values fall back to GOOD unless ``strict_ratings`` is set.
        """
        try:
            return Rating(int(rating))
        except (TypeError, ValueError):
            if self.strict_ratings:
                raise InvalidRatingError(f"Invalid rating: {rating!r} (expected 1-4)") from None
            logger.warning("Unrecognized rating %r, treating as Good", rating)
            return Rating.GOOD

    def review_card(self, card: Card, rating: Rating | int, now: datetime | None = None) -> Card:
        """Review a card and return its updated copy.

        The input card is never modified.
        """
        now = ensure_utc(now) or utcnow()
        rating = self.coerce_rating(rating)

        fsrs_card = self._to_fsrs_card(card, now)
        reviewed, _review_log = self.fsrs.review_card(fsrs_card, FSRSRating(rating.value), now)

        return self._merge(card, reviewed, rating, now)

    def get_scheduling_info(self, card: Card, now: datetime | None = None) -> SchedulingInfo:
        """Project the outcome of every rating without touching ``card``.

        Useful for showing "Again: 1m, Hard: 6m, Good: 10m, Easy: 2d".
        """
        now = ensure_utc(now) or utcnow()
        options = {}
        for rating in Rating:
            projected = self.review_card(card.model_copy(deep=True), rating, now)
            days = (projected.due - now).total_seconds() / 86400
            options[rating] = SchedulingOption(
                rating=rating,
                interval=format_interval(max(0.0, days)),
                card=projected,
            )
        return SchedulingInfo(
            again=options[Rating.AGAIN],
            hard=options[Rating.HARD],
            good=options[Rating.GOOD],
            easy=options[Rating.EASY],
        )

    def preview(self, card: Card, now: datetime | None = None) -> dict[Rating, SchedulingOption]:
        """Same as get_scheduling_info, keyed by rating."""
        return self.get_scheduling_info(card, now).by_rating()

    @staticmethod
    def _is_baseline(card: Card) -> bool:
        """New cards (and cards without usable memory state) start from FSRS defaults."""
        return card.reps == 0 or card.state == CardState.NEW or card.stability <= 0

    def _to_fsrs_card(self, card: Card, now: datetime) -> FSRSCard:
        """Convert a Mnemo card to an FSRS Card."""
        if self._is_baseline(card):
            return FSRSCard(due=now)

        state = _TO_FSRS_STATE[card.state]
        step = None
        if state in (State.Learning, State.Relearning):
            step = card.step if card.step is not None else 0

        return FSRSCard(
            state=state,
            step=step,
            stability=card.stability,
            difficulty=min(10.0, max(1.0, card.difficulty)),
            due=ensure_utc(card.due),
            last_review=ensure_utc(card.last_review),
        )

    def _merge(self, card: Card, reviewed: FSRSCard, rating: Rating, now: datetime) -> Card:
        """Copy FSRS results back onto a copy of the Mnemo card."""
        elapsed_days = 0
        if card.last_review is not None and card.reps > 0:
            elapsed_days = max(0, (now - ensure_utc(card.last_review)).days)

        due = ensure_utc(reviewed.due)
        state = _FROM_FSRS_STATE.get(reviewed.state, CardState.LEARNING)

        lapses = card.lapses
        if rating == Rating.AGAIN and card.reps > 0:
            lapses += 1

        return card.model_copy(
            update={
                "due": due,
                "stability": reviewed.stability or 0.0,
                "difficulty": reviewed.difficulty or 0.0,
                "elapsed_days": elapsed_days,
                "scheduled_days": max(0, (due - now).days),
                "reps": card.reps + 1,
                "lapses": lapses,
                "state": state,
                "step": reviewed.step if state != CardState.REVIEW else None,
                "last_review": now,
                "modified": now,
            }
        )
