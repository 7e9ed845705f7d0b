"""Pydantic models for Mnemo cards, decks, review logs and templates."""

from datetime import UTC, datetime
from enum import IntEnum
from typing import Annotated
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a fresh identifier for a card, deck or log entry."""
    return str(uuid4())


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class CardState(IntEnum):
    """Scheduling state of a card. Stored as an integer 0..3."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class Rating(IntEnum):
    """Reviewer feedback on recall quality."""

    AGAIN = 1  # Forgot completely
    HARD = 2  # Remembered with significant difficulty
    GOOD = 3  # Remembered with some effort
    EASY = 4  # Remembered effortlessly


class Deck(BaseModel):
    """A named collection of cards."""

    id: Annotated[str, Field(default_factory=new_id)]
    name: str
    description: str | None = None
    created: datetime = Field(default_factory=utcnow)
    modified: datetime = Field(default_factory=utcnow)

    @field_validator("created", "modified")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class Card(BaseModel):
    """A flashcard with its memory-model scheduling state."""

    id: Annotated[str, Field(default_factory=new_id)]
    deck_id: str
    front: str
    back: str
    template_id: str | None = None
    created: datetime = Field(default_factory=utcnow)
    modified: datetime = Field(default_factory=utcnow)

    # Scheduling state
    due: datetime = Field(default_factory=utcnow)
    stability: float = Field(default=0.0, ge=0.0)
    difficulty: float = Field(default=0.0, ge=0.0, le=10.0)  # 0 means not yet rated
    elapsed_days: int = Field(default=0, ge=0)
    scheduled_days: int = Field(default=0, ge=0)
    reps: int = Field(default=0, ge=0)
    lapses: int = Field(default=0, ge=0)
    state: CardState = CardState.NEW
    step: int | None = None  # learning/relearning step, None outside those states
    last_review: datetime | None = None

    @field_validator("created", "modified", "due", "last_review")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @classmethod
    def new(
        cls,
        deck_id: str,
        front: str,
        back: str,
        now: datetime | None = None,
        template_id: str | None = None,
    ) -> "Card":
        """Create a card in state New with baseline scheduling values."""
        now = now or utcnow()
        return cls(
            deck_id=deck_id,
            front=front,
            back=back,
            template_id=template_id,
            created=now,
            modified=now,
            due=now,
        )

    def reset_schedule(self, now: datetime) -> None:
        """Return the card to state New with baseline scheduling values."""
        self.state = CardState.NEW
        self.step = None
        self.stability = 0.0
        self.difficulty = 0.0
        self.elapsed_days = 0
        self.scheduled_days = 0
        self.reps = 0
        self.lapses = 0
        self.due = now
        self.last_review = None
        self.modified = now


class ReviewLog(BaseModel):
    """Append-only record of one review; the snapshot is the card after the review."""

    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(default_factory=new_id)]
    card_id: str
    rating: Rating
    state: CardState
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    scheduled_days: int
    review: datetime

    @field_validator("due", "review")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @classmethod
    def from_review(cls, card: Card, rating: Rating, reviewed_at: datetime) -> "ReviewLog":
        """Snapshot a freshly reviewed card."""
        return cls(
            card_id=card.id,
            rating=rating,
            state=card.state,
            due=card.due,
            stability=card.stability,
            difficulty=card.difficulty,
            elapsed_days=card.elapsed_days,
            scheduled_days=card.scheduled_days,
            review=reviewed_at,
        )


class CardTemplate(BaseModel):
    """Front/back template strings with ``{{field}}`` placeholders."""

    id: Annotated[str, Field(default_factory=new_id)]
    name: str
    deck_id: str | None = None
    front_template: str
    back_template: str
    field_names: list[str] = Field(default_factory=list)
    created: datetime = Field(default_factory=utcnow)
    modified: datetime = Field(default_factory=utcnow)

    @field_validator("created", "modified")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class ImportResult(BaseModel):
    """Uniform outcome of every importer."""

    success: bool = False
    decks: list[Deck] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def fail(self, message: str) -> "ImportResult":
        """Mark the import as failed; no partial cards are returned."""
        self.success = False
        self.cards = []
        self.errors.append(message)
        return self
