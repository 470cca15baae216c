"""
Logging for shotcraft.

Loggers configure themselves from settings the first time `get_logger` is
called; use `configure_logging` (or `shotcraft.init`) to override.

    >>> from shotcraft.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> with logger.log_operation('Load dataset'):
    ...     dataset = load_dataset('qa.jsonl')

Settings read from the environment: LOG_LEVEL, LOG_USE_RICH,
LOG_FORMAT_STRING, LOG_FILE_PATH.
"""

from shotcraft._core.logging import (
    RichLogger,
    clear_logging_config,
    configure_logging,
    get_logger,
    is_logging_configured,
    log_summary,
    logger,
)

__all__ = [
    'RichLogger',
    'clear_logging_config',
    'configure_logging',
    'get_logger',
    'is_logging_configured',
    'log_summary',
    'logger',
]
