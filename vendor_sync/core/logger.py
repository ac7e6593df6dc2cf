"""Loguru logging configuration.

This module provides a centralized logging setup. All logging in the
application should use the configured loguru logger.

Features:
    - Dual sinks: Console (human-readable) + File (text with rotation, or JSON)
    - Structured logging with context binding (run / source / entity)

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from vendor_sync.logging.config import LoggingConfig, LogLevel, get_logging_config
from vendor_sync.logging.context import get_sync_logger

# Remove default handler to prevent duplicate logs
logger.remove()


# =============================================================================
# Console Format Templates
# =============================================================================

CONSOLE_FORMAT_DEFAULT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


# =============================================================================
# Setup
# =============================================================================


def setup_logger(
    log_dir: Path | str,
    config: LoggingConfig | None = None,
    *,
    console_level: LogLevel | None = None,
) -> None:
    """Install the console and file sinks.

    Args:
        log_dir: Directory for log files (created if missing)
        config: Sink settings (loaded from LOG_* env vars if None)
        console_level: Overrides ``config.console_level`` (e.g. for --verbose)

    Example:
        >>> from vendor_sync.core.logger import setup_logger, logger
        >>> setup_logger("logs", console_level="DEBUG")
        >>> logger.info("Sync started")
    """
    if config is None:
        config = get_logging_config()
    if console_level is not None:
        config = config.model_copy(update={"console_level": console_level})

    logger.remove()

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # 1. Console Handler (Human-readable)
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT_DEFAULT,
        level=config.console_level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    # 2. File Handler
    if config.json_logs:
        logger.add(
            log_path / "sync_{time:YYYY-MM-DD}.json",
            format="{message}",
            level=config.file_level,
            serialize=True,
            rotation=config.rotation,
            retention=config.retention,
            backtrace=True,
            diagnose=False,
        )
    else:
        logger.add(
            log_path / "sync_{time:YYYY-MM-DD}.log",
            format=CONSOLE_FORMAT_DEFAULT,
            level=config.file_level,
            rotation=config.rotation,
            retention=config.retention,
            compression=config.compression,
            backtrace=True,
            diagnose=False,
        )

    logger.debug(
        "Logger initialized (log_dir={}, console={}, file={}, json={})",
        log_path,
        config.console_level,
        config.file_level,
        config.json_logs,
    )


__all__ = [
    "get_sync_logger",
    "logger",
    "setup_logger",
]
