"""Logging service module for the vendor sync engine.

- Pydantic logging configuration loaded from LOG_* environment variables
- Context binding utilities (run / source / entity)

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from vendor_sync.logging.config import LoggingConfig, get_logging_config
from vendor_sync.logging.context import (
    generate_run_id,
    get_current_context,
    get_sync_logger,
    sync_context,
)

__all__ = [
    "LoggingConfig",
    "generate_run_id",
    "get_current_context",
    "get_logging_config",
    "get_sync_logger",
    "sync_context",
]
