"""
Logging for lyric-fetcher

Two audiences read the logs of an embedded lyric fetcher. The person looking
at the console wants to know which provider answered and when something went
wrong; whoever debugs a bad match wants every request, score and attempt.
setup_logging() serves both:

- Console: WARNING and above, plus records explicitly flagged as user-facing
  (logger.console_info()), coloured per level with colorama
- File: everything at the configured level, rotated by size

Records that carry a "provider" attribute are prefixed with a provider tag
in both outputs.

Nothing is configured on import; the embedding application calls
setup_logging() or configure_from_settings() when it wants output.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Optional, Union

import colorama
from colorama import Back, Fore, Style

PACKAGE_LOGGER = 'lyric_fetcher'

# HTTP and event-loop internals only reach the logs at CRITICAL
QUIET_LOGGERS = (
    'aiohttp',
    'aiohttp.access',
    'aiohttp.client',
    'aiohttp.internal',
    'asyncio',
    'urllib3',
)

FILE_FORMAT = '%(asctime)s | %(name)-28s | %(levelname)-8s | %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

SIZE_UNITS = {'B': 1, 'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}
SIZE_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([KMG]?B)\s*$', re.IGNORECASE)


class ConsoleMessageFilter(logging.Filter):
    """Let only user-facing records through to the console"""

    def __init__(self, min_level: int = logging.WARNING):
        super().__init__()
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self.min_level:
            return True
        return bool(getattr(record, 'console_output', False)) or record.name.endswith('.console')


class ColoredFormatter(logging.Formatter):
    """Formatter tagging provider records and, on the console, colouring the level name"""

    LEVEL_COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True, datefmt: Optional[str] = None):
        super().__init__(fmt or '%(message)s', datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        provider = getattr(record, 'provider', None)
        color = self.LEVEL_COLORS.get(record.levelname)

        if not provider and not (self.use_colors and color):
            return super().format(record)

        # Format a copy so the file handler still sees the untouched record
        shown = logging.makeLogRecord(record.__dict__)
        if provider:
            shown.msg = f"[{provider}] {record.getMessage()}"
            shown.args = None
        if self.use_colors and color:
            shown.levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        return super().format(shown)


def _console_handler(colored_output: bool) -> logging.Handler:
    if colored_output:
        colorama.init()
    handler = logging.StreamHandler(sys.stdout)
    # The filter decides, not the handler level
    handler.setLevel(logging.DEBUG)
    handler.addFilter(ConsoleMessageFilter())
    handler.setFormatter(ColoredFormatter(use_colors=colored_output))
    return handler


def _file_handler(log_file: Union[str, Path], level: int, max_size: str, backup_count: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=parse_size(max_size),
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(fmt=FILE_FORMAT, use_colors=False, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    colored_output: bool = True,
    max_size: str = "10MB",
    backup_count: int = 3
) -> None:
    """
    Install console and file handlers on the root logger

    Existing root handlers are closed and replaced, so calling this again
    reconfigures logging instead of duplicating output.

    Args:
        level: Level name for the file and the root logger
        log_file: Rotating log file path, None for console only
        console_output: Show user-facing records on stdout
        colored_output: Colour the console level names
        max_size: Rotation size such as "10MB"
        backup_count: Rotated files to keep
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(numeric_level)

    if console_output:
        root.addHandler(_console_handler(colored_output))
    if log_file:
        root.addHandler(_file_handler(log_file, numeric_level, max_size, backup_count))

    for name in QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        quiet.setLevel(logging.CRITICAL)
        quiet.propagate = False

    logging.getLogger(PACKAGE_LOGGER).debug(
        f"Logging ready (level={level}, console={console_output}, file={log_file})"
    )


def get_current_log_file() -> Optional[Path]:
    """Path of the active rotating log file, or None when logging to console only."""
    files = [
        Path(handler.baseFilename)
        for handler in logging.getLogger().handlers
        if isinstance(handler, logging.handlers.RotatingFileHandler)
    ]
    return files[0] if files else None


def parse_size(size_str: str) -> int:
    """
    Convert a human size such as "10MB" or "1.5 gb" to bytes

    Raises:
        ValueError: If the string is not a number followed by B, KB, MB or GB
    """
    match = SIZE_PATTERN.match(size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")
    number, unit = match.groups()
    return int(float(number) * SIZE_UNITS[unit.upper()])


def get_logger(name: str) -> logging.Logger:
    """
    Get the logger for a module

    The returned logger has a console_info(message) method for records that
    should reach the console even below WARNING.
    """
    logger = logging.getLogger(name)

    if not hasattr(logger, 'console_info'):
        def console_info(message: str) -> None:
            logger.info(message, extra={'console_output': True})

        logger.console_info = console_info

    return logger


def configure_from_settings(settings=None) -> None:
    """
    Configure logging from the logging section of the settings

    A relative logging.file is placed in the settings' config directory.

    Args:
        settings: Settings instance (defaults to the global settings)
    """
    if settings is None:
        from ..config.settings import get_settings
        settings = get_settings()

    options = settings.logging
    log_file = None
    if options.file:
        log_file = Path(options.file)
        if not log_file.is_absolute():
            log_file = settings.get_config_directory() / log_file

    setup_logging(
        level=options.level,
        log_file=str(log_file) if log_file else None,
        console_output=options.console_output,
        colored_output=options.colored_output,
        max_size=options.max_size,
        backup_count=options.backup_count
    )


class LogContext:
    """
    Temporarily change a logger's level

    Example:
        with LogContext(get_logger('lyric_fetcher.lyrics.netease'), 'DEBUG'):
            await provider.fetch_lyrics(track)
    """

    def __init__(self, logger: Union[logging.Logger, str], level: Union[str, int]):
        self.logger = logging.getLogger(logger) if isinstance(logger, str) else logger
        self.new_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
        self.old_level = self.logger.level

    def __enter__(self) -> "LogContext":
        self.old_level = self.logger.level
        self.logger.setLevel(self.new_level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.logger.setLevel(self.old_level)
