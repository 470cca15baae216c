from __future__ import annotations

from typing import Iterable, Optional


class GenerationError(Exception):
    """Base exception for generation errors."""

    pass


class CompletionFailure(GenerationError):
    """Raised when a completion request fails or times out after retries."""

    def __init__(self, message: str, model: Optional[str] = None):
        self.message = message
        self.model = model
        super().__init__(message)


class GradeParseFailure(ValueError):
    """Raised when a grader response does not hold an integer grade in range."""

    def __init__(self, message: str, raw: str = ''):
        self.message = message
        self.raw = raw
        super().__init__(message)


class ConfigurationError(Exception):
    """Raised when the compiler configuration is invalid."""

    pass


class MissingFieldError(ConfigurationError, KeyError):
    """
    Raised when a labeled pair does not hold a requested field.
    """

    def __init__(self, field: str, available: Iterable[str] = ()):
        self.field = field
        self.available = sorted(available)
        self.message = (
            f"Field '{field}' not found in labeled pair. "
            f'Available fields: {self.available}'
        )
        super().__init__(self.message)

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.message


class NoCandidateError(Exception):
    """Raised when selection is attempted over an empty candidate list."""

    pass
