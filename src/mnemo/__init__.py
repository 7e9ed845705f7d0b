"""Mnemo: spaced-repetition scheduling and flashcard import/export."""

__version__ = "0.1.0"
