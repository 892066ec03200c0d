"""
Logging configuration for blobmirror.

Console output goes through Rich when available, with optional file output
and an optional JSON formatter for log shippers.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Any

try:
    import importlib.util

    RICH_AVAILABLE = importlib.util.find_spec("rich.logging") is not None
except Exception:
    RICH_AVAILABLE = False


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


class ConsoleFormatter(logging.Formatter):
    """Plain console format: "level: timestamp - msg", with file:line for errors."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base_format = f"{record.levelname}: {self.formatTime(record)} - {record.getMessage()}"
        if record.levelno >= logging.ERROR and record.pathname:
            filename = Path(record.pathname).name
            base_format = f"{record.levelname}: {self.formatTime(record)} - {filename}:{record.lineno} - {record.getMessage()}"
        return base_format


# Map string level names to logging constants
LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    """
    Parse logging level from string or int.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int

    Returns:
        Logging level constant (INFO if the value is not recognised)
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level_upper = level.upper()
        if level_upper in LEVEL_MAP:
            return LEVEL_MAP[level_upper]
    return logging.INFO


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    file_mode: str = "a",
    console_enabled: bool = True,
    use_rich: bool = True,
    json_format: bool = False,
) -> logging.Logger:
    """
    Setup logging configuration for blobmirror.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int (default: INFO)
        log_file: Optional file path to write logs to (default: None, console only)
        file_mode: File mode for file handler - 'a' for append, 'w' for overwrite
        console_enabled: Whether to enable console logging (default: True)
        use_rich: Whether to use RichHandler for console output (default: True)
        json_format: Emit one JSON document per line on the console instead

    Returns:
        Logger instance
    """
    global _logging_setup_done

    logger = logging.getLogger("blobmirror")
    # Only clear handlers from this specific logger, not root or child loggers
    logger.handlers.clear()

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    if console_enabled:
        if json_format:
            from blobmirror.observability.structured_logging import StructuredFormatter

            json_handler = logging.StreamHandler(sys.stdout)
            json_handler.setLevel(level_int)
            json_handler.setFormatter(StructuredFormatter())
            logger.addHandler(json_handler)
        elif use_rich and RICH_AVAILABLE:
            from rich.logging import RichHandler

            logger.addHandler(
                RichHandler(
                    level=level_int,
                    show_time=True,
                    show_path=False,
                    markup=False,
                    rich_tracebacks=True,
                    tracebacks_show_locals=False,
                    log_time_format="[%X]",
                    omit_repeated_times=False,
                )
            )
        else:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level_int)
            console_handler.setFormatter(ConsoleFormatter())
            logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode=file_mode)
        # File captures everything the logger lets through
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    logger.propagate = True
    _logging_setup_done = True
    return logger


def setup_logging_from_config(config: dict[str, Any], project_dir: Path | None = None) -> logging.Logger:
    """
    Setup logging from the ``logging`` section of a blobmirror config.

    Args:
        config: Configuration dictionary (logging settings under the 'logging' key)
        project_dir: Optional project directory for resolving relative log file paths

    Returns:
        Logger instance
    """
    logging_config = config.get("logging") or {}

    level = logging_config.get("level", logging.INFO)
    file_mode = logging_config.get("file_mode", "a")
    json_format = str(logging_config.get("format", "text")).lower() == "json"
    console_type = logging_config.get("console_type", "rich")

    log_file = logging_config.get("file") or logging_config.get("log_file")
    if log_file and project_dir:
        log_file = Path(log_file)
        if not log_file.is_absolute():
            log_file = project_dir / log_file

    return setup_logging(
        level=level,
        log_file=log_file,
        file_mode=file_mode,
        console_enabled=logging_config.get("console_enabled", True),
        use_rich=console_type == "rich",
        json_format=json_format,
    )


# Track if logging has been set up to avoid duplicate setup
_logging_setup_done = False
_logging_setup_lock = threading.Lock()


def _auto_setup_logging() -> None:
    """Install a default console handler the first time a logger is requested."""
    global _logging_setup_done

    if _logging_setup_done:
        return

    with _logging_setup_lock:
        if _logging_setup_done:
            return
        if logging.getLogger("blobmirror").handlers:
            _logging_setup_done = True
            return
        setup_logging()


def get_logger(name: str = "blobmirror") -> logging.Logger:
    """
    Get a logger instance.

    Sets up default logging if nothing has configured it yet, so library
    callers get sensible output without an explicit setup call.

    Args:
        name: Logger name (default: "blobmirror")

    Returns:
        Logger instance
    """
    _auto_setup_logging()

    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
