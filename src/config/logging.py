"""Logging configuration using loguru.

Sets up console logging, a rotating application log, an errors-only log
and a dedicated import log for records bound with ``type="import"``.
"""

import logging
import sys
from pathlib import Path

from loguru import logger

# Remove default handler
logger.remove()


def setup_logging(
    log_level: str = "INFO",
    log_file: str = "logs/app.log",
    enable_console: bool = True,
    console_level: str = None,
) -> None:
    """Configure logging with loguru.

    Args:
        log_level: Logging level for file (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file
        enable_console: Whether to enable console logging
        console_level: Console logging level (defaults to log_level if not specified)

    Example:
        >>> setup_logging(log_level="INFO", log_file="logs/app.log")
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if console_level is None:
        console_level = log_level

    logger.remove()

    if enable_console:
        logger.add(
            sys.stderr,
            level=console_level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            colorize=True,
        )

    logger.add(
        log_file,
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="100 MB",
        retention="30 days",
        compression="zip",
        enqueue=True,
    )

    error_log_file = str(log_path.parent / "errors.log")
    logger.add(
        error_log_file,
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="50 MB",
        retention="60 days",
        compression="zip",
        enqueue=True,
        backtrace=True,
        diagnose=True,
    )

    # One line per finished import batch
    imports_log_file = str(log_path.parent / "imports.log")
    logger.add(
        imports_log_file,
        level="INFO",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
        rotation="50 MB",
        retention="1 year",
        compression="zip",
        enqueue=True,
        filter=lambda record: record["extra"].get("type") == "import",
    )

    # SQLAlchemy logs through stdlib logging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.info(
        f"Logging initialized: level={log_level}, file={log_file}, console={enable_console}"
    )


def log_import(message: str, **kwargs) -> None:
    """Log an import batch event to the imports log file.

    Example:
        >>> log_import("Batch complete", batch_id=12, new_fills=40)
    """
    logger.bind(type="import", **kwargs).info(message)
