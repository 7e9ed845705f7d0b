"""Progress statistics recomputed from a card collection."""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from mnemo.core.models import Card, CardState, ReviewLog, ensure_utc, utcnow


@dataclass
class DailyStats:
    date: date
    reviewed: int
    new_cards: int


@dataclass
class StudyStatistics:
    # Overall
    total_cards: int = 0
    new_cards: int = 0
    learning_cards: int = 0  # Learning and Relearning
    review_cards: int = 0
    due_today: int = 0

    # Unique cards whose last review falls in the window
    cards_reviewed_today: int = 0
    cards_reviewed_this_week: int = 0

    total_reviews: int = 0
    average_retention: float = 0.0

    # Only filled when review logs are supplied
    current_streak: int = 0
    longest_streak: int = 0
    daily_stats: list[DailyStats] = field(default_factory=list)


def calculate_statistics(
    cards: Iterable[Card],
    now: datetime | None = None,
    logs: Iterable[ReviewLog] | None = None,
) -> StudyStatistics:
    """Compute statistics for a set of cards.

    "Today" starts at midnight of ``now`` in its own timezone (UTC unless
    an aware datetime in another zone is passed); "this week" is the 7
    days before that.

    Retention is a proxy: Review-state cards as a percentage of all
    Learning, Relearning and Review cards.
    """
    now = now or utcnow()
    if now.tzinfo is None:
        now = ensure_utc(now)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today_start - timedelta(days=7)

    stats = StudyStatistics()
    reviewed_today: set[str] = set()
    reviewed_week: set[str] = set()

    for card in cards:
        stats.total_cards += 1
        if card.state == CardState.NEW:
            stats.new_cards += 1
        elif card.state in (CardState.LEARNING, CardState.RELEARNING):
            stats.learning_cards += 1
        elif card.state == CardState.REVIEW:
            stats.review_cards += 1

        if card.due <= now:
            stats.due_today += 1

        stats.total_reviews += card.reps

        if card.last_review is not None:
            if card.last_review >= today_start:
                reviewed_today.add(card.id)
            if card.last_review >= week_start:
                reviewed_week.add(card.id)

    stats.cards_reviewed_today = len(reviewed_today)
    stats.cards_reviewed_this_week = len(reviewed_week)

    studied = stats.learning_cards + stats.review_cards
    stats.average_retention = (stats.review_cards / studied) * 100 if studied > 0 else 0.0

    if logs is not None:
        logs = list(logs)
        today = today_start.date()
        review_dates = {log.review.astimezone(now.tzinfo).date() for log in logs}
        stats.current_streak, stats.longest_streak = calculate_streaks(review_dates, today)
        stats.daily_stats = daily_breakdown(logs, today, tz=now.tzinfo)

    return stats


def calculate_streaks(review_dates: Iterable[date], today: date) -> tuple[int, int]:
    """Compute (current, longest) streaks of consecutive review days.

    The current streak counts consecutive days ending today or yesterday
    (so the streak doesn't break mid-day before a review).
    """
    review_set = set(review_dates)
    if not review_set:
        return 0, 0

    # Current streak: walk backwards from today (or yesterday)
    current_streak = 0
    check = today
    if check not in review_set and (check - timedelta(days=1)) in review_set:
        check = check - timedelta(days=1)
    while check in review_set:
        current_streak += 1
        check -= timedelta(days=1)

    # Longest streak: iterate sorted dates
    ordered = sorted(review_set)
    longest_streak = 1
    streak = 1
    for i in range(1, len(ordered)):
        if ordered[i] - ordered[i - 1] == timedelta(days=1):
            streak += 1
            longest_streak = max(longest_streak, streak)
        else:
            streak = 1

    return current_streak, longest_streak


def daily_breakdown(
    logs: Iterable[ReviewLog], today: date, days: int = 7, tz=None
) -> list[DailyStats]:
    """Reviews and first-time reviews per day for the last ``days`` days, oldest first."""
    tz = tz or UTC
    reviewed: Counter[date] = Counter()
    first_seen: dict[str, date] = {}
    for log in sorted(logs, key=lambda entry: entry.review):
        day = log.review.astimezone(tz).date()
        reviewed[day] += 1
        first_seen.setdefault(log.card_id, day)
    new_per_day = Counter(first_seen.values())

    start = today - timedelta(days=days - 1)
    return [
        DailyStats(date=day, reviewed=reviewed[day], new_cards=new_per_day[day])
        for day in (start + timedelta(days=offset) for offset in range(days))
    ]


def progress_summary(stats: StudyStatistics) -> str:
    """A short human-readable summary of today's progress."""
    reviewed = stats.cards_reviewed_today
    if reviewed == 0:
        return "Start studying to see your progress!"
    if reviewed >= 30:
        return "Amazing dedication! You're crushing it!"
    if reviewed >= 10:
        return "Great work today! You're on fire!"
    return "Good start! Keep it up!"
