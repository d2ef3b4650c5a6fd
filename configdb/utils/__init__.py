"""
Utility functions for configdb.
"""

from .validation import (
    validate_id,
    validate_ids,
    validate_collection_name,
    validate_field_path,
)
from .logging import setup_logger, configure_logging, get_logger, log_enter_exit, LogContext

__all__ = [
    # Validation
    "validate_id",
    "validate_ids",
    "validate_collection_name",
    "validate_field_path",
    # Logging
    "setup_logger",
    "configure_logging",
    "get_logger",
    "log_enter_exit",
    "LogContext",
]
