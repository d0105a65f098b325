import logging
import os
import sys
from logging import Formatter, StreamHandler, getLogger
from logging.handlers import TimedRotatingFileHandler
from logging import DEBUG, INFO, WARNING, ERROR, CRITICAL

class ColourFormatter(Formatter):
    """Custom formatter with colored output for different log levels."""

    LEVEL_COLOURS = [
        (DEBUG, "\x1b[40;1m"),
        (INFO, "\x1b[34;1m"),
        (WARNING, "\x1b[33;1m"),
        (ERROR, "\x1b[31m"),
        (CRITICAL, "\x1b[41m"),
    ]

    FORMATS = {
        level: Formatter(
            f"\x1b[30;1m%(asctime)s\x1b[0m {colour}%(levelname)-8s\x1b[0m "
            f"\x1b[35m%(name)s\x1b[0m %(message)s "
            f"\x1b[30;1m(%(filename)s:%(lineno)d)\x1b[0m",
            "%H:%M:%S",  # Shortened time format
        )
        for level, colour in LEVEL_COLOURS
    }

    def format(self, record):
        formatter = self.FORMATS.get(record.levelno, self.FORMATS[DEBUG])
        return formatter.format(record)

class FileFormatter(Formatter):
    """Simple formatter for file output without colors."""

    def __init__(self):
        super().__init__(
            "%(asctime)s %(levelname)-8s %(name)s %(message)s (%(filename)s:%(lineno)d)",
            "%Y-%m-%d %H:%M:%S"
        )

class SystemdFormatter(Formatter):
    """Formatter optimized for systemd journal output."""

    def __init__(self):
        super().__init__(
            "%(levelname)s %(name)s %(message)s (%(filename)s:%(lineno)d)"
        )

def setup_logging(level="INFO", log_to_file=False, log_file_path="logs/imagen3-mcp.log", backup_count=14):
    """
    Set up logging for the application, with optional daily-rotated file logging.

    The console handler always writes to stderr: stdout carries the RPC channel
    and must only ever contain response lines.

    Args:
        level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file (bool): Whether to log to a file in addition to console
        log_file_path (str): Path to the log file (if log_to_file is True)
        backup_count (int): Number of rotated daily files to keep

    Returns:
        logging.Logger: Configured logger instance
    """
    # Check if running under systemd
    is_systemd = os.environ.get('JOURNAL_STREAM') is not None or os.environ.get('INVOCATION_ID') is not None

    handlers = []

    console_handler = StreamHandler(sys.stderr)
    if is_systemd or not sys.stderr.isatty():
        console_handler.setFormatter(SystemdFormatter())
    else:
        console_handler.setFormatter(ColourFormatter())
    handlers.append(console_handler)

    if log_to_file:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # Rotate at midnight, keep two weeks of history
        file_handler = TimedRotatingFileHandler(
            log_file_path,
            when="midnight",
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(FileFormatter())
        handlers.append(file_handler)

    # Configure root logger
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # Request logs from httpx include the full URL and therefore the API key
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger()

def get_logger(name=None):
    """
    Get a logger for a module.

    Args:
        name (str): Logger name (typically __name__ from the calling module)

    Returns:
        logging.Logger: Logger instance inheriting the root configuration
    """
    return getLogger(name)
