"""Exception hierarchy for Mnemo."""


class MnemoError(Exception):
    """Base class for all Mnemo errors."""


class StructuralError(MnemoError):
    """The input as a whole cannot be read (bad archive, missing collection, bad envelope)."""


class RowError(MnemoError):
    """A single record in an otherwise readable input is malformed."""


class InvalidInputError(MnemoError):
    """Input rejected before any processing started."""


class InvalidRatingError(InvalidInputError):
    """A review rating outside Again..Easy."""


class TemplateValidationError(InvalidInputError):
    """Template field values are missing required fields."""

    def __init__(self, missing: dict[int, list[str]]):
        self.missing = missing
        detail = "; ".join(f"row {row}: {', '.join(fields)}" for row, fields in missing.items())
        super().__init__(f"Missing required template fields ({detail})")


class ConfigurationError(MnemoError):
    """Invalid configuration unrelated to data content."""


class CardNotFoundError(MnemoError):
    """No card exists with the requested ID."""
