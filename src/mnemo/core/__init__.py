"""Core library for Mnemo."""

from mnemo.core.errors import (
    CardNotFoundError,
    ConfigurationError,
    InvalidInputError,
    InvalidRatingError,
    MnemoError,
    RowError,
    StructuralError,
    TemplateValidationError,
)
from mnemo.core.models import (
    Card,
    CardState,
    CardTemplate,
    Deck,
    ImportResult,
    Rating,
    ReviewLog,
)
from mnemo.core.scheduler import SchedulingEngine, SchedulingInfo, SchedulingOption, format_interval
from mnemo.core.session import ReviewOutcome, ReviewService
from mnemo.core.storage import Storage

__all__ = [
    # Models
    "Card",
    "CardState",
    "CardTemplate",
    "Deck",
    "ImportResult",
    "Rating",
    "ReviewLog",
    # Errors
    "CardNotFoundError",
    "ConfigurationError",
    "InvalidInputError",
    "InvalidRatingError",
    "MnemoError",
    "RowError",
    "StructuralError",
    "TemplateValidationError",
    # Scheduling
    "ReviewOutcome",
    "ReviewService",
    "SchedulingEngine",
    "SchedulingInfo",
    "SchedulingOption",
    "format_interval",
    # Storage
    "Storage",
]
