import io
import logging
import time
from collections import Counter
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from shotcraft._core.environment import settings
from shotcraft._core.utils import Timer

DEFAULT_LOG_LEVEL = 'INFO'
LEVEL_NAMES = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
CONSOLE_FORMAT = '%(asctime)s | %(name)-20s | %(levelname)-8s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'

# Per-logger message counts, keyed by level name
_log_stats: Dict[str, Counter] = {}
_session_start_time: float = time.monotonic()
_logging_configured = False


def _level_number(level: Union[int, str]) -> int:
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return level


def render_table(
    data: List[Dict[str, Any]],
    title: Optional[str] = None,
    columns: Optional[List[str]] = None,
) -> str:
    """Render rows with rich and return the plain text, for any log handler."""
    console = Console(file=io.StringIO(), record=True, width=120)
    table = Table(title=title, show_header=True, header_style='bold magenta')
    columns = columns or list(data[0].keys())
    for column in columns:
        table.add_column(str(column), style='cyan')
    for row in data:
        table.add_row(*[str(row.get(column, '')) for column in columns])
    console.print(table)
    return console.export_text(clear=True)


class RichLogger(logging.Logger):
    """
    Logger class installed by `configure_logging`.

    On top of `logging.Logger` it adds emoji-prefixed shortcuts, rich tables
    rendered to text, and timed operation spans. Every record is counted per
    level so `log_summary` can report on the session.
    """

    def _log(self, level, msg, args, **kwargs):
        counts = _log_stats.setdefault(self.name, Counter())
        counts[logging.getLevelName(level)] += 1
        super()._log(level, msg, args, **kwargs)

    def success(self, message: str, *args, **kwargs):
        self.info(f'✅ {message}', *args, **kwargs)

    def warning_highlight(self, message: str, *args, **kwargs):
        self.warning(f'⚠️  {message}', *args, **kwargs)

    def error_highlight(self, message: str, *args, **kwargs):
        self.error(f'❌ {message}', *args, **kwargs)

    def log_table(
        self,
        data: List[Dict[str, Any]],
        title: Optional[str] = None,
        columns: Optional[List[str]] = None,
        level: Union[int, str] = logging.INFO,
    ) -> None:
        """Log rows as a rich table. Nothing is rendered below the active level."""
        level = _level_number(level)
        if not self.isEnabledFor(level):
            return
        if not data:
            self.log(level, f"{title or 'Table'}: no rows")
            return
        self.log(level, '\n' + render_table(data, title=title, columns=columns))

    @contextmanager
    def _span(self, operation_name: str, level: int) -> Iterator[Timer]:
        enabled = self.isEnabledFor(level)
        if enabled:
            self.log(level, f'🔹 Starting | {operation_name}')
        timer = Timer()
        try:
            with timer:
                yield timer
        except Exception as e:
            self.error_highlight(
                f'Failed | {operation_name} after {timer.elapsed_time:.2f}s',
                exc_info=e,
            )
            raise
        if enabled:
            self.log(level, f'✅ Completed | {operation_name} in {timer.elapsed_time:.2f}s')

    @contextmanager
    def log_operation(self, operation_name: str, level: int = logging.INFO):
        """
        Time a block, logging its start and completion at `level`.

        Failures are always logged at ERROR and re-raised. The yielded Timer
        holds the duration once the block exits.
        """
        with self._span(operation_name, level) as timer:
            yield timer

    @asynccontextmanager
    async def async_log_operation(self, operation_name: str, level: int = logging.INFO):
        """`log_operation` for `async with` blocks."""
        with self._span(operation_name, level) as timer:
            yield timer


def _console_handler(use_rich: bool, format_string: Optional[str]) -> logging.Handler:
    if use_rich:
        handler = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter('%(message)s', datefmt='[%X]'))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(format_string or CONSOLE_FORMAT))
    return handler


def _file_handler(file_path: str, format_string: Optional[str]) -> logging.Handler:
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(file_path, mode='a')
    handler.setFormatter(logging.Formatter(format_string or FILE_FORMAT))
    return handler


def configure_logging(
    level: Optional[str] = None,
    use_rich: Optional[bool] = None,
    format_string: Optional[str] = None,
    file_path: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Install shotcraft's handlers on the root logger.

    Arguments win over settings, which come from the environment or `.env`.
    A second call is a no-op unless `force` is set.

    Args:
        level: Log level name, e.g. 'DEBUG'.
        use_rich: Use a RichHandler instead of a plain stream handler.
        format_string: Format for the plain and file handlers.
        file_path: Also append records to this file.
        force: Replace an existing configuration.
    """
    global _logging_configured, _session_start_time

    if _logging_configured and not force:
        return
    if not _logging_configured:
        _session_start_time = time.monotonic()

    level = (level or settings.log_level).upper()
    use_rich = settings.log_use_rich if use_rich is None else use_rich
    format_string = format_string or settings.log_format_string
    file_path = file_path or settings.log_file_path

    logging.setLoggerClass(RichLogger)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_console_handler(use_rich, format_string))
    if file_path:
        root.addHandler(_file_handler(file_path, format_string))

    _logging_configured = True
    logging.getLogger(__name__).debug(
        f'Logging configured: level={level}, rich={use_rich}, file={file_path}'
    )


def is_logging_configured() -> bool:
    return _logging_configured


def clear_logging_config() -> None:
    """Drop root handlers and mark logging unconfigured. Meant for tests."""
    global _logging_configured
    logging.getLogger().handlers.clear()
    _logging_configured = False


def get_logger(name: str) -> RichLogger:
    """Return a RichLogger, configuring logging from settings on first use."""
    if not _logging_configured:
        configure_logging()
    return logging.getLogger(name)


def log_summary() -> Dict[str, Dict[str, int]]:
    """
    Log a table of message counts per logger for this session.

    Returns:
        The counts that were reported, `{logger: {level: count}}`.
    """
    snapshot = {
        name: {level: counts[level] for level in LEVEL_NAMES}
        for name, counts in sorted(_log_stats.items())
        if sum(counts.values())
    }
    runtime = time.monotonic() - _session_start_time
    rows = [
        {'logger': name, **counts, 'total': sum(counts.values())}
        for name, counts in snapshot.items()
    ]
    get_logger('shotcraft.summary').log_table(
        rows,
        title=f'Logging summary ({runtime:.2f}s)',
        columns=['logger', *LEVEL_NAMES, 'total'],
    )
    return snapshot


logger: RichLogger = get_logger('shotcraft')


__all__ = [
    'clear_logging_config',
    'configure_logging',
    'get_logger',
    'is_logging_configured',
    'log_summary',
    'render_table',
    'RichLogger',
    'logger',
]
