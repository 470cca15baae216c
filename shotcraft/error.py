from shotcraft._core.error import (
    CompletionFailure,
    ConfigurationError,
    GenerationError,
    GradeParseFailure,
    MissingFieldError,
    NoCandidateError,
)

__all__ = [
    'CompletionFailure',
    'ConfigurationError',
    'GenerationError',
    'GradeParseFailure',
    'MissingFieldError',
    'NoCandidateError',
]
