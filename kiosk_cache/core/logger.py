"""
Logging configuration for kiosk-cache.

This module sets up the logging system with multiple outputs:
    - Console: Real-time messages with tqdm-compatible formatting
    - log_full_*.log: Complete log of all events (DEBUG and above)
    - log_errors_*.log: Only ERROR and CRITICAL level messages
    - sync_failures_*.log: Tracks that could not be downloaded or reindexed

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized files.

Log File Locations:
    All log files are created in the logs directory derived from the
    configured data directory (storage.data_dir/logs). Each run gets its
    own timestamped set of files.

Usage:
    from kiosk_cache.core.logger import setup_logging, get_logger

    setup_logging(config.storage.logs_dir)  # Call once at startup
    logger = get_logger(__name__)            # Get logger for each module

    logger.info("Starting sync")
    log_sync_failure(logger, code="01009", title="Song", artist="Artist",
                     url="https://...", error_message="HTTP 404")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for console output (compact, tqdm-friendly)
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level name on console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Uses tqdm.write(), which prints above any active bar instead of
    tearing through it with a carriage return.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class SyncFailureHandler(logging.Handler):
    """
    Handler that captures per-track sync failures into a report file.

    Writes records that carry sync failure information to
    sync_failures_*.log in a simple, human-readable format:

        01009 - Song Title - Artist Name
        https://storage.example.com/videos/01009.mp4
        HTTP 404

        01010 - Another Song - Another Artist
        (no url)
        DB error: disk I/O error

    The handler looks for specific extra fields in log records:
        - 'sync_failed_code': The track code (required to trigger a write)
        - 'sync_failed_title': The track title
        - 'sync_failed_artist': The artist name
        - 'sync_failed_url': The asset URL (optional)
        - 'sync_failed_reason': Short failure description

    Only records containing these fields are written to the report.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle (None until open() is called).
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after handler is created.
        File is opened in write mode (overwrites existing content).
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "sync_failed_code"):
            return

        if self.report_file is None:
            return

        try:
            code = getattr(record, "sync_failed_code", "?")
            title = getattr(record, "sync_failed_title", "Unknown")
            artist = getattr(record, "sync_failed_artist", "Unknown")
            url = getattr(record, "sync_failed_url", None) or "(no url)"
            reason = getattr(record, "sync_failed_reason", "")

            self.report_file.write(f"{code} - {title} - {artist}\n")
            self.report_file.write(f"{url}\n")
            self.report_file.write(f"{reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(logs_dir: Path, console_level: int = logging.INFO) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        logs_dir: Directory where log files will be created.
                  Created if it doesn't exist.
        console_level: Minimum level shown on the console. The log files
                       always receive DEBUG and above.

    Behavior:
        1. Create logs_dir if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG, removing old handlers
        4. Console handler (TqdmLoggingHandler), colored, at console_level
        5. Full log file handler: logs_dir/log_full_{timestamp}.log
        6. Error log file handler: logs_dir/log_errors_{timestamp}.log
           (filtered to ERROR+ by ErrorOnlyFilter)
        7. Sync failure report: logs_dir/sync_failures_{timestamp}.log

    Thread Safety:
        This function is NOT thread-safe. Call it once from the main
        thread before starting any work.

    See Also:
        log_sync_failure(): Helper to log with correct extra fields
    """
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    # Console handler (tqdm-compatible) with colors
    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    # Full log file handler
    full_log_path = logs_dir / f"log_full_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    # Error-only log file handler
    error_log_path = logs_dir / f"log_errors_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    # Sync failures report
    failures_path = logs_dir / f"sync_failures_{timestamp}.log"
    failures_handler = SyncFailureHandler(failures_path)
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'kiosk_cache.library.synchronizer'.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called propagate to a
        root logger with no handlers, so nothing is printed. Tests rely on
        this (and on pytest's caplog) instead of calling setup_logging().
    """
    return logging.getLogger(name)


def log_sync_failure(
    logger: logging.Logger,
    code: str,
    title: str,
    artist: str,
    url: str | None,
    error_message: str,
) -> None:
    """
    Log a track that failed to download or reindex.

    Logs an ERROR level message and attaches the extra fields that
    SyncFailureHandler uses to write the failure report.

    Example:
        log_sync_failure(
            logger,
            code="01009",
            title="Song Title",
            artist="Artist Name",
            url="https://storage.example.com/videos/01009.mp4",
            error_message="HTTP 404",
        )
    """
    logger.error(
        f"Sync failed: {code} ({artist} - {title}) - {error_message}",
        extra={
            "sync_failed_code": code,
            "sync_failed_title": title,
            "sync_failed_artist": artist,
            "sync_failed_url": url,
            "sync_failed_reason": error_message,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes all handlers on the root logger, then removes them.
    Called from the CLI in a finally block.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
